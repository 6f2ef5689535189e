import json
import logging
from functools import wraps

from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import JsonResponse, StreamingHttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from pydantic import ValidationError as PayloadValidationError

from .decorators import (
    no_store, rate_limit_claim, rate_limit_create, rate_limit_edit,
    rate_limit_finalize, rate_limit_payment, rate_limit_view,
)
from .exceptions import (
    AuthenticationRequiredError, AuthorizationError, CodeGenerationExhaustedError,
    InvalidShareCodeError, ItemNotFoundError, NotFoundError, PreconditionViolation,
)
from .schemas import (
    ClaimPayload, CreateReceiptPayload, DisplayNamePayload, MigrateGuestPayload,
    PaymentIntentPayload, PaymentProfilePayload, SubmissionPayload,
)
from .services import SettlementService

logger = logging.getLogger(__name__)

RECEIPT_NOT_FOUND = 'Receipt not found'


def get_service():
    """Services are built per request; nothing is shared between requests"""
    return SettlementService()


def error_response(message, status):
    return JsonResponse({'error': message}, status=status)


def service_errors(view):
    """Translate service exceptions into JSON error responses"""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except json.JSONDecodeError:
            return error_response('Invalid JSON', 400)
        except PayloadValidationError as e:
            details = [
                {'field': '.'.join(str(part) for part in err['loc']), 'message': err['msg']}
                for err in e.errors()
            ]
            return JsonResponse({'error': 'Invalid request data', 'details': details}, status=400)
        except ValidationError as e:
            return error_response(' '.join(e.messages), 400)
        except (InvalidShareCodeError, ItemNotFoundError) as e:
            return error_response(str(e), 400)
        except PreconditionViolation as e:
            return error_response(str(e), 409)
        except AuthenticationRequiredError as e:
            return error_response(str(e), 401)
        except AuthorizationError as e:
            return error_response(str(e), 403)
        except NotFoundError as e:
            return error_response(str(e) or RECEIPT_NOT_FOUND, 404)
        except CodeGenerationExhaustedError as e:
            logger.error(f"Share code generation exhausted on {request.path}")
            return error_response(str(e), 503)
    return wrapper


def parse_body(request) -> dict:
    data = json.loads(request.body or b'{}')
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def require_identity(request):
    if request.identity is None:
        raise AuthenticationRequiredError('Authentication required.')
    return request.identity


# Receipts

@csrf_exempt
@rate_limit_create
@require_http_methods(["POST"])
@service_errors
def create_receipt(request):
    """Create a receipt, or reset the caller's receipt with the same client id"""
    identity = require_identity(request)
    payload = CreateReceiptPayload.model_validate(parse_body(request))

    result = get_service().create_receipt(
        identity,
        payload.client_receipt_id,
        [item.to_item_dict() for item in payload.items],
        {
            'receipt_total': payload.receipt_total,
            'subtotal': payload.subtotal,
            'tax': payload.tax,
            'gratuity': payload.gratuity,
        },
    )
    return JsonResponse({'id': result['id'], 'shareCode': result['share_code']}, status=201)


@rate_limit_view
@require_http_methods(["GET"])
@service_errors
def recent_receipts(request):
    include_archived = request.GET.get('includeArchived', '').lower() in ('1', 'true', 'yes')
    summaries = get_service().list_recent(
        request.identity,
        limit=request.GET.get('limit'),
        include_archived=include_archived,
    )
    return JsonResponse({'receipts': [summary.to_json() for summary in summaries]})


def _owner_action(action_name):
    @csrf_exempt
    @rate_limit_edit
    @require_http_methods(["POST"])
    @service_errors
    def view(request, client_receipt_id):
        identity = require_identity(request)
        action = getattr(get_service(), action_name)
        if not action(client_receipt_id, identity):
            return error_response(RECEIPT_NOT_FOUND, 404)
        return JsonResponse({'success': True})

    view.__name__ = f"{action_name}_receipt"
    view.__doc__ = f"Host-only {action_name} by client receipt id"
    return view


archive_receipt = _owner_action('archive')
unarchive_receipt = _owner_action('unarchive')
destroy_receipt = _owner_action('destroy')


@no_store
@rate_limit_view
@require_http_methods(["GET"])
@service_errors
def get_receipt(request, share_code):
    receipt = get_service().get_receipt(share_code, request.identity)
    if receipt is None:
        return error_response(RECEIPT_NOT_FOUND, 404)
    return JsonResponse(receipt.to_json())


@csrf_exempt
@rate_limit_edit
@require_http_methods(["POST"])
@service_errors
def join_receipt(request, share_code):
    identity = require_identity(request)
    receipt = get_service().join_receipt(share_code, identity)
    if receipt is None:
        return error_response(RECEIPT_NOT_FOUND, 404)
    return JsonResponse(receipt.to_json())


# Live settlement

@no_store
@rate_limit_view
@require_http_methods(["GET"])
@service_errors
def live_snapshot(request, share_code):
    """
    Long-poll for the settlement snapshot.

    Without ``since`` this answers immediately. With ``since=<revision>`` it
    waits until the receipt moves past that revision or the poll window
    closes, then returns whatever is current.
    """
    since = request.GET.get('since')
    try:
        since = int(since) if since not in (None, '') else None
    except ValueError:
        return error_response('since must be a revision number', 400)

    watch = get_service().observe_settlement(share_code, request.identity)
    if watch is None:
        return error_response(RECEIPT_NOT_FOUND, 404)

    with watch:
        timeout = getattr(settings, 'SPLITS_LIVE_LONG_POLL_SECONDS', 25)
        snapshot = watch.wait_for_change(since, timeout)
    if snapshot is None:
        return error_response(RECEIPT_NOT_FOUND, 404)
    return JsonResponse(snapshot.to_json())


def _event_stream(watch):
    with watch:
        for snapshot in watch:
            if snapshot is None:
                yield "event: closed\ndata: {}\n\n"
                return
            data = json.dumps(snapshot.to_json(), separators=(',', ':'))
            yield f"id: {snapshot.revision}\nevent: snapshot\ndata: {data}\n\n"


@rate_limit_view
@require_http_methods(["GET"])
@service_errors
def settlement_stream(request, share_code):
    """Server-sent events: one ``snapshot`` event per revision, ``closed`` on archive"""
    watch = get_service().observe_settlement(share_code, request.identity)
    if watch is None:
        return error_response(RECEIPT_NOT_FOUND, 404)

    response = StreamingHttpResponse(_event_stream(watch), content_type='text/event-stream')
    response['Cache-Control'] = 'no-cache'
    response['X-Accel-Buffering'] = 'no'
    return response


# Claims and participants

@csrf_exempt
@rate_limit_claim
@require_http_methods(["POST"])
@service_errors
def adjust_claim(request, share_code):
    identity = require_identity(request)
    payload = ClaimPayload.model_validate(parse_body(request))
    result = get_service().adjust_claim(share_code, payload.item_key, identity, payload.delta)
    return JsonResponse({'appliedDelta': result.applied_delta, 'quantity': result.quantity})


@csrf_exempt
@rate_limit_edit
@require_http_methods(["POST"])
@service_errors
def set_submission(request, share_code):
    identity = require_identity(request)
    payload = SubmissionPayload.model_validate(parse_body(request))
    participant = get_service().set_submission_status(share_code, identity, payload.is_submitted)
    return JsonResponse({
        'participantKey': participant.participant_key,
        'isSubmitted': participant.is_submitted,
    })


@csrf_exempt
@rate_limit_edit
@require_http_methods(["POST"])
@service_errors
def update_display_name(request, share_code):
    identity = require_identity(request)
    payload = DisplayNamePayload.model_validate(parse_body(request))
    participant = get_service().update_display_name(share_code, identity, payload.display_name)
    return JsonResponse({
        'participantKey': participant.participant_key,
        'displayName': participant.display_name,
    })


@csrf_exempt
@rate_limit_edit
@require_http_methods(["POST"])
@service_errors
def remove_participant(request, share_code, participant_key):
    identity = require_identity(request)
    removed = get_service().remove_participant(share_code, identity, participant_key)
    return JsonResponse({'removed': removed})


# Settlement

@csrf_exempt
@rate_limit_finalize
@require_http_methods(["POST"])
@service_errors
def finalize_settlement(request, share_code):
    identity = require_identity(request)
    get_service().finalize_settlement(share_code, identity)
    return JsonResponse({'success': True})


@csrf_exempt
@rate_limit_payment
@require_http_methods(["POST"])
@service_errors
def mark_payment_intent(request, share_code):
    identity = require_identity(request)
    payload = PaymentIntentPayload.model_validate(parse_body(request))
    result = get_service().mark_payment_intent(share_code, identity, payload.method)
    return JsonResponse({
        'paymentStatus': result['payment_status'].value,
        'amount': str(result['amount']),
        'method': result['method'].value,
    })


@csrf_exempt
@rate_limit_payment
@require_http_methods(["POST"])
@service_errors
def confirm_payment(request, share_code, participant_key):
    identity = require_identity(request)
    result = get_service().confirm_payment(share_code, identity, participant_key)
    return JsonResponse({'confirmed': result['confirmed'], 'archived': result['archived']})


# Account

@csrf_exempt
@rate_limit_edit
@require_http_methods(["POST"])
@service_errors
def update_payment_profile(request):
    identity = require_identity(request)
    if not identity.is_authenticated:
        raise AuthenticationRequiredError('Sign in to set up payment options.')
    payload = PaymentProfilePayload.model_validate(parse_body(request))
    config = get_service().update_payment_profile(identity, payload)
    options = config.public_options().to_json()
    options['hasPaymentOptions'] = config.has_payment_options
    options['absorbExtraCents'] = config.absorb_extra_cents
    return JsonResponse(options)


@csrf_exempt
@rate_limit_edit
@require_http_methods(["POST"])
@service_errors
def migrate_guest(request):
    identity = require_identity(request)
    payload = MigrateGuestPayload.model_validate(parse_body(request))
    result = get_service().migrate_guest_data(identity, payload.guest_device_id)
    return JsonResponse({
        'migratedReceiptCount': result['migrated_receipt_count'],
        'migratedParticipantCount': result['migrated_participant_count'],
        'migratedClaimCount': result['migrated_claim_count'],
    })


def ratelimit_exceeded(request, exception):
    """Handle rate limit exceeded responses"""
    return JsonResponse({
        'error': 'Rate limit exceeded. Please try again later.'
    }, status=429)
