"""
Watch API.

The browser's watch view calls the tick endpoint once per interval while
the tutorial is open. The caller's identity comes from the bearer token,
never from the request body.
"""

from fastapi import APIRouter, Depends

from recap.api.deps import get_clock, get_current_identity, get_recorder_config, get_store
from recap.api.errors import http_error
from recap.api.schemas import SessionResponse, TickResponse
from recap.components.catalog import GetTutorialInput, run_get_tutorial
from recap.components.recorder import (
    GetSessionInput,
    RecorderConfig,
    TickInput,
    run_get_session,
    run_tick,
)
from recap.core.ports.auth import Identity
from recap.core.ports.store import DocumentStorePort
from recap.core.ports.time import TimePort

router = APIRouter()


@router.post("/{tutorial_id}/tick", response_model=TickResponse)
def record_tick(
    tutorial_id: str,
    identity: Identity = Depends(get_current_identity),
    store: DocumentStorePort = Depends(get_store),
    clock: TimePort = Depends(get_clock),
    config: RecorderConfig = Depends(get_recorder_config),
) -> TickResponse:
    """
    Record one minute of watch time for the caller.

    The tutorial must resolve to a valid video first; a missing tutorial
    or unusable link is terminal for the view (404 / 422).
    """
    tutorial = run_get_tutorial(GetTutorialInput(tutorial_id=tutorial_id), store=store)
    if not tutorial.success:
        raise http_error(tutorial.errors[0].code)

    result = run_tick(
        TickInput(
            user_id=identity.id,
            tutorial_id=tutorial_id,
            user_email=identity.email,
            display_name=identity.display_name,
        ),
        store=store,
        time_port=clock,
        config=config,
    )
    if result.total_minutes_watched is None:
        raise http_error(result.errors[0].code)

    return TickResponse(
        tutorial_id=tutorial_id,
        total_minutes_watched=result.total_minutes_watched,
        view_log_saved=result.view_log_id is not None,
    )


@router.get("/{tutorial_id}/session", response_model=SessionResponse)
def get_session(
    tutorial_id: str,
    identity: Identity = Depends(get_current_identity),
    store: DocumentStorePort = Depends(get_store),
    clock: TimePort = Depends(get_clock),
) -> SessionResponse:
    """Get the caller's watch time for a tutorial (0 if never watched)."""
    output = run_get_session(
        GetSessionInput(user_id=identity.id, tutorial_id=tutorial_id),
        store=store,
        time_port=clock,
    )
    if not output.success:
        raise http_error(output.errors[0].code, "Could not load watch time")

    if output.session is None:
        return SessionResponse(tutorial_id=tutorial_id, user_id=identity.id, total_minutes_watched=0)

    return SessionResponse(
        tutorial_id=tutorial_id,
        user_id=identity.id,
        total_minutes_watched=output.session.total_minutes_watched,
        last_updated=output.session.last_updated,
    )
