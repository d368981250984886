from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional


@dataclass
class SocialGraphConfig:
    """
    Settings shared by the Cloud Functions entry points and the Flask app.
    Local emulators are picked up by the Firebase SDK itself through
    FIRESTORE_EMULATOR_HOST / FIREBASE_AUTH_EMULATOR_HOST.
    """
    users_collection: str = "users"
    region: str = "us-central1"
    timeout_sec: int = 60                   # Gen2 callable limit is 3600
    search_min_length: int = 4

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "SocialGraphConfig":
        return cls(
            users_collection=str(cfg.get("users_collection", "users")),
            region=str(cfg.get("region", "us-central1")),
            timeout_sec=int(cfg.get("timeout_sec", 60)),
            search_min_length=int(cfg.get("search_min_length", 4)),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SocialGraphConfig":
        env = os.environ if environ is None else environ
        keys = {
            "users_collection": "SOCIAL_USERS_COLLECTION",
            "region": "FUNCTION_REGION",
            "timeout_sec": "FUNCTION_TIMEOUT_SEC",
            "search_min_length": "SEARCH_MIN_LENGTH",
        }
        return cls.from_dict({k: env[v] for k, v in keys.items() if env.get(v)})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
