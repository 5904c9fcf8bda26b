"""
Business event catalog.

Maps product actions to advertising events. Meta events go through the
deduplicated two-channel path; Google tag events are browser-only.
Every helper takes an optional ``composer`` and falls back to the one
set up with ``configure_tracking()``.
"""

from typing import Any, Mapping, Optional

from ..config import RelaySettings
from ..models import TrackedUser
from .composer import EventComposer, get_composer

CURRENCY = 'BRL'


def _resolve(composer: Optional[EventComposer]) -> EventComposer:
    return composer or get_composer()


def track_purchase(
    settings: RelaySettings,
    user: Optional[TrackedUser],
    trip_id: str,
    document_type: str,
    composer: Optional[EventComposer] = None,
) -> None:
    """
    High-value commitment, such as uploading a flight or hotel voucher.

    Args:
        document_type: e.g. 'document_upload', 'document_attached_to_itinerary'
    """
    composer = _resolve(composer)
    params = {
        # Nominal value; marks the action as high-value
        'value': 1.00,
        'currency': CURRENCY,
        'content_ids': [trip_id],
        'content_name': document_type,
        'content_type': 'product',
    }
    composer.track(settings, 'Purchase', params, user)
    composer.track_google('purchase', {
        **params,
        'items': [{'item_id': trip_id, 'item_name': document_type}],
    })


def track_generate_lead(
    settings: RelaySettings,
    user: Optional[TrackedUser],
    service_type: str,
    trip_id: Optional[str] = None,
    composer: Optional[EventComposer] = None,
) -> None:
    """
    Quote request or registration.

    ``service_type`` is e.g. 'Hotel Quotation', 'Ticket Assistance',
    'NewTrip' or 'CompleteRegistration'.
    """
    composer = _resolve(composer)
    params = {
        'value': 1,
        'currency': CURRENCY,
        'service_type': service_type,
        'content_ids': [trip_id] if trip_id else [],
    }
    composer.track_google('generate_lead', params)

    if service_type == 'CompleteRegistration':
        composer.track(settings, 'CompleteRegistration', {'content_name': 'User Profile'}, user)
    else:
        composer.track(settings, 'Lead', params, user)
        composer.track(settings, 'Contact', {'content_name': service_type}, user)


def track_share(
    settings: RelaySettings,
    user: Optional[TrackedUser],
    trip_id: str,
    theme_id: Optional[str] = None,
    composer: Optional[EventComposer] = None,
) -> None:
    """User shared the countdown image."""
    composer = _resolve(composer)
    params = {
        'content_type': 'countdown_image',
        'item_id': trip_id,
        'method': 'web_share_api',
        'theme_id': theme_id or 'default',
    }
    composer.track(settings, 'Share', params, user)
    composer.track_google('share', params)


def track_select_theme(
    settings: RelaySettings,
    user: Optional[TrackedUser],
    trip_id: str,
    theme_id: str,
    composer: Optional[EventComposer] = None,
) -> None:
    composer = _resolve(composer)
    params = {'content_type': 'theme', 'item_id': theme_id, 'trip_id': trip_id}
    composer.track(settings, 'CustomizeProduct', params, user)
    composer.track_google('select_content', params)


def track_checklist_item_toggle(
    item: Mapping[str, Any],
    trip_id: str,
    is_checked: bool,
    composer: Optional[EventComposer] = None,
) -> None:
    """Checklist item (un)checked. Internal analysis only, Google tag."""
    _resolve(composer).track_google('update_checklist_item', {
        'item_id': item.get('id'),
        'item_name': item.get('text'),
        'item_category': item.get('phase'),
        'trip_id': trip_id,
        'checked': is_checked,
    })


# --- Coupon club ---


def track_view_coupon_list(
    settings: RelaySettings,
    user: Optional[TrackedUser],
    composer: Optional[EventComposer] = None,
) -> None:
    composer = _resolve(composer)
    composer.track_google('view_item_list', {'item_list_name': 'coupon_club'})
    composer.track(settings, 'ViewContent', {'content_name': 'Coupon Club List'}, user)


def track_filter_coupon(
    settings: RelaySettings,
    user: Optional[TrackedUser],
    category: str,
    composer: Optional[EventComposer] = None,
) -> None:
    composer = _resolve(composer)
    composer.track_google('view_item_list', {
        'item_list_name': 'coupon_club',
        'items': [{'item_list_name': category}],
    })
    composer.track(settings, 'Search', {'search_string': category, 'content_category': 'Coupon'}, user)


def track_coupon_use(
    settings: RelaySettings,
    user: Optional[TrackedUser],
    coupon: Mapping[str, Any],
    composer: Optional[EventComposer] = None,
) -> None:
    """Coupon code copied or link clicked; a strong lead signal."""
    composer = _resolve(composer)
    params = {
        'content_type': coupon.get('type'),
        'item_id': coupon.get('id'),
        'item_name': coupon.get('companyName'),
        'item_category': coupon.get('category'),
        'promotion_id': coupon.get('id'),
        'promotion_name': coupon.get('offerTitle'),
    }
    composer.track(settings, 'Lead', params, user)
    composer.track_google('select_promotion', params)


# --- Itinerary ---


def track_export(
    settings: RelaySettings,
    user: Optional[TrackedUser],
    trip_id: str,
    fmt: str = 'pdf',
    composer: Optional[EventComposer] = None,
) -> None:
    composer = _resolve(composer)
    composer.track_google('export_content', {
        'content_type': f'itinerary_{fmt}',
        'item_id': trip_id,
    })
    composer.track(settings, 'ViewContent', {
        'content_name': f'itinerary_{fmt}',
        'content_ids': [trip_id],
    }, user)
