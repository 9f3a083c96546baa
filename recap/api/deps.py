import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from recap.adapters.auth.firebase import FirebaseTokenVerifier, init_firebase
from recap.app_shell.context import ServiceContext
from recap.components.aggregator import Aggregator, AggregatorConfig
from recap.components.recorder import RecorderConfig
from recap.core.ports.auth import Identity
from recap.core.ports.store import DocumentStorePort
from recap.core.ports.time import TimePort
from recap.rules.loader import load_rules
from recap.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("RECAP_DATA_DIR", "./data"))
        self.rules_path = Path(os.environ.get("RECAP_RULES_PATH", str(self.base_dir / "rules.yaml")))


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


# --- Context ---
_context_instance: ServiceContext | None = None


def get_context() -> ServiceContext:
    """Get the process-wide service context (store, configs, aggregator)."""
    global _context_instance
    if _context_instance is None:
        settings = get_settings()
        _context_instance = ServiceContext.create(get_rules(settings), settings.data_dir)
    return _context_instance


def reset_context() -> None:
    """Drop the cached context (for testing)."""
    global _context_instance
    _context_instance = None


def get_store(ctx: ServiceContext = Depends(get_context)) -> DocumentStorePort:
    return ctx.store


def get_clock(ctx: ServiceContext = Depends(get_context)) -> TimePort:
    return ctx.clock


def get_recorder_config(ctx: ServiceContext = Depends(get_context)) -> RecorderConfig:
    return ctx.recorder_config


def get_aggregator_config(ctx: ServiceContext = Depends(get_context)) -> AggregatorConfig:
    return ctx.aggregator_config


def get_aggregator(ctx: ServiceContext = Depends(get_context)) -> Aggregator:
    return ctx.aggregator


# --- Auth ---
bearer_scheme = HTTPBearer(auto_error=False)

_verifier_instance: FirebaseTokenVerifier | None = None


def get_token_verifier() -> FirebaseTokenVerifier:
    """Get the Firebase ID-token verifier singleton."""
    global _verifier_instance
    if _verifier_instance is None:
        init_firebase(project_id=get_context().rules.store.firestore_project)
        _verifier_instance = FirebaseTokenVerifier()
    return _verifier_instance


def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    verifier: FirebaseTokenVerifier = Depends(get_token_verifier),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = verifier.verify(credentials.credentials)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
