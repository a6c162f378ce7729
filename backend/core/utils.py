"""Audit trail helpers for catalog and cart actions"""
import logging

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Client address, taking the first hop of X-Forwarded-For behind a proxy"""
    meta = getattr(request, 'META', None) or {}
    forwarded = meta.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return meta.get('REMOTE_ADDR') or None


def describe_instance(instance):
    """
    Audit identity of a model instance.

    Products are named by their English name; other models fall back to str().

    Returns:
        (model_name, object_id, object_name)
    """
    object_name = getattr(instance, 'name_en', None) or str(instance)
    return instance._meta.object_name, str(instance.pk), object_name[:255]


def create_audit_log(request=None, action=None, instance=None, changes=None,
                     model_name=None, object_id=None, object_name=None):
    """
    Record a business action in the audit log.

    Pass the affected `instance` and its model name, id and display name are
    read from it. Rows without a single instance (cart lines keyed by
    user:product, favorites of a product id) pass model_name and object_id.

    The acting user and client IP come from the request. A failed write is
    logged and returns None so the action itself still succeeds.
    """
    if instance is not None:
        model_name, object_id, derived_name = describe_instance(instance)
        object_name = object_name or derived_name

    if not action or not model_name or object_id in (None, ''):
        logger.warning(f"Audit log skipped: incomplete entry (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    user = getattr(request, 'user', None)
    if user is not None and not user.is_authenticated:
        user = None

    try:
        return AuditLog.objects.create(
            user=user,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=get_client_ip(request)
        )
    except Exception as e:
        logger.error(f"Failed to write audit log for {action} {model_name}#{object_id}: {str(e)}")
        return None
