"""Pydantic schemas for Slack incoming-webhook payloads (Block Kit subset)."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


class SlackTextField(BaseModel):
    """One text cell of a section block."""

    type: Literal["mrkdwn", "plain_text"] = Field(
        ..., description="Text rendering mode."
    )
    text: str = Field(..., description="Cell content.")


class SlackSection(BaseModel):
    """Section block laid out as a two-column field grid."""

    type: Literal["section"] = "section"
    fields: List[SlackTextField] = Field(default_factory=list)


class SlackMessage(BaseModel):
    """Webhook message body.

    ``text`` is the notification fallback shown by clients that cannot render
    blocks.
    """

    text: str = Field(..., description="Fallback notification text.")
    blocks: List[SlackSection] = Field(default_factory=list)
