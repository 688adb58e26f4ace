"""Current user endpoint."""

from fastapi import APIRouter, Depends

from reportdesk.core.auth import RequestUserContext, get_current_user_context

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Return current authenticated user profile and role."""

    return {
        "id": str(context.user_id),
        "external_subject": context.external_subject,
        "email": context.email,
        "display_name": context.display_name,
        "role": context.role.value,
        "department_id": str(context.department_id) if context.department_id is not None else None,
        "unit_id": str(context.unit_id) if context.unit_id is not None else None,
        "can_lock": context.can_lock,
    }
