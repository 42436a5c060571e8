# The MIT License (MIT)
# Copyright © 2023 Yuma Rao
# Copyright © 2023 Opentensor Foundation

# Permission is hereby granted, free of charge, to any person obtaining a copy of this software and associated
# documentation files (the “Software”), to deal in the Software without restriction, including without limitation
# the rights to use, copy, modify, merge, publish, distribute, sublicense, and/or sell copies of the Software,
# and to permit persons to whom the Software is furnished to do so, subject to the following conditions:

# The above copyright notice and this permission notice shall be included in all copies or substantial portions of
# the Software.

# THE SOFTWARE IS PROVIDED “AS IS”, WITHOUT WARRANTY OF ANY KIND, EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO
# THE WARRANTIES OF MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL
# THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION
# OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER
# DEALINGS IN THE SOFTWARE.

import argparse
import os
from typing import Any, Mapping

import bittensor as bt
from pydantic import BaseModel, Field, field_validator

from roundsplit.task.submission_validator import DEFAULT_REGISTRY

ENV_PREFIX = "ROUNDSPLIT_"


class NodeSettings(BaseModel):
    """Resolved node configuration."""

    node_id: str = Field(min_length=1)
    username: str | None = None
    data_dir: str = "~/.roundsplit/data"
    player_data_url: str = "http://127.0.0.1:8000/get_player_data"
    submission_strategy: str = "points_changed"
    fetch_timeout: float = Field(default=30.0, gt=0)
    poll_interval: float = Field(default=60.0, ge=0)
    accept_missing_claim: bool = True
    start_round: int = Field(default=1, ge=0)
    max_rounds: int | None = Field(default=None, ge=1)

    @field_validator("submission_strategy")
    @classmethod
    def _known_strategy(cls, value: str) -> str:
        if value not in DEFAULT_REGISTRY.names:
            raise ValueError(f"unknown submission strategy {value!r}, expected one of {DEFAULT_REGISTRY.names}")
        return value

    @property
    def data_path(self) -> str:
        return os.path.expanduser(self.data_dir)


# CLI dest -> NodeSettings field
_ARG_FIELDS = {
    "node.id": "node_id",
    "node.username": "username",
    "node.data_dir": "data_dir",
    "node.player_data_url": "player_data_url",
    "node.submission_strategy": "submission_strategy",
    "node.fetch_timeout": "fetch_timeout",
    "node.poll_interval": "poll_interval",
    "node.reject_missing_claim": "accept_missing_claim",
    "node.start_round": "start_round",
    "node.max_rounds": "max_rounds",
}


def add_args(parser: argparse.ArgumentParser) -> None:
    """
    Adds node arguments to the parser.
    """

    parser.add_argument("--node.id", type=str, help="Public key identifying this node.", default=None)

    parser.add_argument(
        "--node.username",
        type=str,
        help="Player username whose activity this node submits.",
        default=None,
    )

    parser.add_argument(
        "--node.data_dir",
        type=str,
        help="Directory holding round data, payloads and this node's state.",
        default=None,
    )

    parser.add_argument(
        "--node.player_data_url",
        type=str,
        help="Endpoint returning the list of player records.",
        default=None,
    )

    parser.add_argument(
        "--node.submission_strategy",
        type=str,
        choices=DEFAULT_REGISTRY.names,
        help="How audited submissions are judged valid.",
        default=None,
    )

    parser.add_argument(
        "--node.fetch_timeout",
        type=float,
        help="Seconds to wait for round data before treating it as unavailable.",
        default=None,
    )

    parser.add_argument(
        "--node.poll_interval",
        type=float,
        help="Seconds between rounds.",
        default=None,
    )

    parser.add_argument(
        "--node.reject_missing_claim",
        action="store_false",
        help="Vote against peers whose distribution list is missing or undecodable.",
        default=None,
    )

    parser.add_argument("--node.start_round", type=int, help="First round to run.", default=None)

    parser.add_argument(
        "--node.max_rounds",
        type=int,
        help="Stop after this many rounds (default: run forever).",
        default=None,
    )


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """``ROUNDSPLIT_<FIELD>`` variables, e.g. ROUNDSPLIT_NODE_ID."""
    overrides: dict[str, Any] = {}
    for name in NodeSettings.model_fields:
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None and value != "":
            overrides[name] = value
    return overrides


def load_settings(
    args: argparse.Namespace | None = None,
    environ: Mapping[str, str] | None = None,
) -> NodeSettings:
    """Resolve settings: defaults < CLI flags < environment.

    Raises:
        pydantic.ValidationError: if the resolved values are invalid
            (e.g. no node id anywhere).
    """
    values: dict[str, Any] = {}
    if args is not None:
        for dest, field_name in _ARG_FIELDS.items():
            value = getattr(args, dest, None)
            if value is not None:
                values[field_name] = value

    values.update(_env_overrides(os.environ if environ is None else environ))
    return NodeSettings(**values)


def config() -> argparse.ArgumentParser:
    """Parser with node and bittensor logging arguments."""
    parser = argparse.ArgumentParser(description="roundsplit task node")
    bt.logging.add_args(parser)
    add_args(parser)
    return parser


__all__ = ["ENV_PREFIX", "NodeSettings", "add_args", "config", "load_settings"]
