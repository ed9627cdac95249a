# src/gtd_digest/core/state.py

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import tzinfo

from ..tasks.digest import DigestPlan
from .ports import ChatTransport, ContentSource, DoneLog


@dataclass
class AppState:
    # Settings stay on the state so every component gets them from one place.
    settings: object

    source: ContentSource
    done_log: DoneLog
    rng: random.Random
    plan: DigestPlan
    tz: tzinfo | None = None

    # None for one-shot commands (preview, periods) that never talk to the user.
    transport: ChatTransport | None = None
