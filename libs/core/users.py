"""Basic-auth user list resolved once from configuration."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from dotenv import dotenv_values

from .settings import Settings

logger = logging.getLogger(__name__)

_USER_KEY = re.compile(r"^BASIC_USER_(.+)$")


@dataclass(frozen=True)
class BasicUser:
    username: str
    password: str
    email: str = ""


def _from_json(raw: str) -> List[BasicUser]:
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Failed to parse BASIC_USERS JSON; ignoring it")
        return []
    if not isinstance(parsed, list):
        return []
    users: List[BasicUser] = []
    for item in parsed:
        if not isinstance(item, dict):
            continue
        username = item.get("username")
        password = item.get("password")
        if username and password:
            users.append(BasicUser(str(username), str(password), str(item.get("email") or "")))
    return users


def _from_env_pairs(environ: Mapping[str, str]) -> List[BasicUser]:
    users: List[BasicUser] = []
    for key, value in environ.items():
        match = _USER_KEY.match(key)
        if not match or not value:
            continue
        suffix = match.group(1)
        password = environ.get(f"BASIC_PASS_{suffix}")
        if password:
            users.append(BasicUser(value, password, environ.get(f"BASIC_EMAIL_{suffix}", "")))
    return users


def _env_mapping(
    settings: Settings, environ: Mapping[str, str] | None
) -> Dict[str, str]:
    """Values from the settings env file, overlaid by the process environment."""
    merged: Dict[str, str] = {}
    env_file = getattr(settings, "model_config", {}).get("env_file")
    if isinstance(env_file, (str, Path)):
        merged.update(
            {k: v for k, v in dotenv_values(env_file).items() if v is not None}
        )
    merged.update(os.environ if environ is None else environ)
    return merged


def load_users(
    settings: Settings, environ: Mapping[str, str] | None = None
) -> Tuple[BasicUser, ...]:
    """Resolve the allowed users.

    Order of precedence: ``BASIC_USERS`` JSON, then ``BASIC_USER_<X>`` /
    ``BASIC_PASS_<X>`` pairs, then two built-in accounts. Pairs are read
    from the env file as well as the environment; the environment wins.
    """

    env = _env_mapping(settings, environ)
    if settings.basic_users:
        users = _from_json(settings.basic_users)
        if users:
            return tuple(users)

    users = _from_env_pairs(env)
    if users:
        return tuple(users)

    return (
        BasicUser("therapist", "speech123", "therapist@example.com"),
        BasicUser("assistant", "helper123", "assistant@example.com"),
    )


__all__ = ["BasicUser", "load_users"]
