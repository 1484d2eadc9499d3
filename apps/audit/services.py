from apps.audit.models import AdminLog

SYSTEM_ACTOR_NAME = "system"


def record_admin_action(*, actor, description):
    if actor is None:
        return AdminLog.objects.create(admin_id=None, admin_name=SYSTEM_ACTOR_NAME, description=description)
    return AdminLog.objects.create(
        admin_id=actor.id,
        admin_name=getattr(actor, "display_name", None) or actor.get_username(),
        description=description,
    )
