"""Per-invocation state handed from the ``frida-mgr`` group to its commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from fridamgr.config import FridaMgrConfig


class FridaMgrContext:
    """What every command needs to know about the current invocation.

    Attributes:
        config: Effective configuration (defaults when no file was found).
        config_path: File the configuration came from, if any.
        verbose: Number of ``-v`` flags.
        color: Whether ANSI colour is allowed.
    """

    __slots__ = ("config", "config_path", "verbose", "color")

    def __init__(
        self,
        config: Optional[FridaMgrConfig] = None,
        *,
        config_path: Optional[Path] = None,
        verbose: int = 0,
        color: bool = True,
    ) -> None:
        self.config = config if config is not None else FridaMgrConfig()
        self.config_path = config_path
        self.verbose = verbose
        self.color = color

    @property
    def data_dir(self) -> Path:
        return self.config.data_dir


#: Injects the :class:`FridaMgrContext`, creating a default one when a
#: command runs outside the group (as in tests).
pass_context = click.make_pass_decorator(FridaMgrContext, ensure=True)
