from abc import ABC, abstractmethod

from hippo.schemas.slack import SlackMessage


class AbstractDispatcher(ABC):
	"""Interface for outbound notification delivery."""

	@abstractmethod
	def send(self, message: SlackMessage) -> None:
		"""Deliver one already-admitted message.

		There is no retry: a failed delivery is reported and the message
		is discarded.

		Args:
			message: Formatted payload to deliver.

		Raises:
			DeliveryAppError: If the endpoint is unreachable or answers non-2xx.
		"""
		...
