"""
HTTP routes for the GreenQuest API
"""

import logging

import pytz
from dateutil.parser import isoparse
from flask import Blueprint, jsonify, request

from greenquest import __version__
from greenquest.schemas import ProfileUpdate, SignInRequest, SignUpRequest
from greenquest.services import get_services
from greenquest.services.storage_service import IMAGE_KINDS
from greenquest.utils.auth_middleware import current_user_id, require_auth
from greenquest.utils.error_handler import (
    AuthorizationError,
    GreenQuestError,
    NotFoundError,
    ValidationError,
    handle_error,
    parse_request,
)

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)

MIN_LIMIT = 1
MAX_LIMIT = 100


def _limit_arg(default):
    raw = request.args.get('limit')
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError("limit must be an integer", field='limit')
    return max(MIN_LIMIT, min(MAX_LIMIT, value))


def _before_arg():
    """
    Optional ISO-8601 cursor; naive timestamps are taken as UTC
    """
    raw = request.args.get('before')
    if not raw:
        return None
    try:
        before = isoparse(raw)
    except ValueError:
        raise ValidationError("before must be an ISO-8601 timestamp", field='before')
    if before.tzinfo is None:
        before = pytz.UTC.localize(before)
    return before


def _require_self(user_id):
    if current_user_id() != user_id:
        raise AuthorizationError("You can only access your own activity")


# Health check endpoint
@api.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'service': 'greenquest-backend',
        'version': __version__
    })


# ============= AUTH ENDPOINTS =============

@api.route('/auth/signup', methods=['POST'])
def signup():
    """Register a new user"""
    try:
        data = parse_request(SignUpRequest, request.get_json(silent=True))
        result = get_services().auth.sign_up(
            email=data.email,
            password=data.password,
            display_name=data.display_name,
            school=data.school
        )
        return jsonify(result), 201
    except Exception as e:
        return handle_error(e)


@api.route('/auth/login', methods=['POST'])
def login():
    """Sign in with email and password"""
    try:
        data = parse_request(SignInRequest, request.get_json(silent=True))
        result = get_services().auth.sign_in(data.email, data.password)
        return jsonify(result)
    except Exception as e:
        return handle_error(e)


# ============= USER ENDPOINTS =============

@api.route('/users/<user_id>', methods=['GET'])
@require_auth
def get_user_profile(user_id):
    try:
        profile = get_services().users.get_user_profile(user_id)
        if profile is None:
            raise NotFoundError("User not found")
        if user_id != current_user_id():
            profile.pop('email', None)
        return jsonify(profile)
    except Exception as e:
        return handle_error(e)


@api.route('/users/me', methods=['PUT'])
@require_auth
def update_my_profile():
    """Update the signed-in user's profile in Firestore and Firebase Auth"""
    try:
        services = get_services()
        user_id = current_user_id()
        update = parse_request(ProfileUpdate, request.get_json(silent=True))
        changes = update.model_dump(mode='json', exclude_none=True)

        result = services.users.update_user_profile(user_id, changes)

        try:
            result['auth_updated'] = services.auth.update_auth_profile(
                user_id,
                display_name=changes.get('display_name'),
                photo_url=changes.get('photo_url')
            )
        except GreenQuestError as e:
            # Firestore is the source of truth for profiles
            logger.warning(f"Auth profile not updated for {user_id}: {e.message}")
            result['auth_updated'] = False

        return jsonify(result)
    except Exception as e:
        return handle_error(e)


# ============= ACTIVITY ENDPOINTS =============

@api.route('/users/<user_id>/activities', methods=['GET'])
@require_auth
def get_user_activities(user_id):
    try:
        _require_self(user_id)
        activities = get_services().activities.get_user_activities(user_id, _limit_arg(10))
        return jsonify({'activities': activities})
    except Exception as e:
        return handle_error(e)


@api.route('/users/<user_id>/activities/summary', methods=['GET'])
@require_auth
def get_activity_summary(user_id):
    try:
        _require_self(user_id)
        return jsonify(get_services().activities.get_activity_summary(user_id))
    except Exception as e:
        return handle_error(e)


@api.route('/activities', methods=['POST'])
@require_auth
def log_activity():
    """Log an eco-friendly activity and award its points"""
    try:
        data = request.get_json(silent=True)
        if not data:
            raise ValidationError("Request body required")
        result = get_services().activities.log_activity(
            current_user_id(),
            data.get('category'),
            data.get('value')
        )
        return jsonify(result), 201
    except Exception as e:
        return handle_error(e)


# ============= POST ENDPOINTS =============

@api.route('/posts', methods=['GET'])
@require_auth
def get_posts():
    """Community feed, optionally for one school or one user"""
    try:
        posts = get_services().posts
        limit = _limit_arg(10)
        before = _before_arg()
        school = request.args.get('school')
        user_id = request.args.get('user_id')

        if user_id:
            result = posts.get_user_posts(user_id, limit, before)
        elif school:
            result = posts.get_school_posts(school, limit, before)
        else:
            result = posts.get_posts(limit, before)
        return jsonify({'posts': result})
    except Exception as e:
        return handle_error(e)


@api.route('/posts', methods=['POST'])
@require_auth
def create_post():
    try:
        services = get_services()
        user_id = current_user_id()
        author = services.users.get_user_profile(user_id)
        result = services.posts.create_post(user_id, request.get_json(silent=True) or {}, author=author)
        return jsonify(result), 201
    except Exception as e:
        return handle_error(e)


@api.route('/posts/<post_id>/like', methods=['POST'])
@require_auth
def like_post(post_id):
    try:
        likes = get_services().posts.like_post(post_id)
        return jsonify({'post_id': post_id, 'likes': likes})
    except Exception as e:
        return handle_error(e)


# ============= MARKETPLACE ENDPOINTS =============

@api.route('/marketplace', methods=['GET'])
@require_auth
def get_listings():
    """Active listings with optional school, seller and search filters"""
    try:
        listings = get_services().marketplace.get_listings(
            school=request.args.get('school'),
            seller_id=request.args.get('seller_id'),
            query=request.args.get('q'),
            limit=_limit_arg(20),
            before=_before_arg()
        )
        return jsonify({'listings': listings})
    except Exception as e:
        return handle_error(e)


@api.route('/marketplace', methods=['POST'])
@require_auth
def create_listing():
    try:
        services = get_services()
        seller_id = current_user_id()
        seller = services.users.get_user_profile(seller_id)
        result = services.marketplace.create_listing(
            seller_id,
            request.get_json(silent=True) or {},
            seller=seller
        )
        return jsonify(result), 201
    except Exception as e:
        return handle_error(e)


@api.route('/marketplace/<listing_id>', methods=['GET'])
@require_auth
def get_listing(listing_id):
    try:
        listing = get_services().marketplace.get_listing(listing_id, with_chat_count=True)
        if listing is None:
            raise NotFoundError("Listing not found")
        return jsonify(listing)
    except Exception as e:
        return handle_error(e)


@api.route('/marketplace/<listing_id>', methods=['PATCH'])
@require_auth
def update_listing(listing_id):
    try:
        result = get_services().marketplace.update_listing(
            listing_id,
            current_user_id(),
            request.get_json(silent=True) or {}
        )
        return jsonify(result)
    except Exception as e:
        return handle_error(e)


@api.route('/marketplace/<listing_id>', methods=['DELETE'])
@require_auth
def delete_listing(listing_id):
    try:
        return jsonify(get_services().marketplace.delete_listing(listing_id, current_user_id()))
    except Exception as e:
        return handle_error(e)


@api.route('/marketplace/<listing_id>/like', methods=['POST'])
@require_auth
def like_listing(listing_id):
    try:
        likes = get_services().marketplace.like_listing(listing_id)
        return jsonify({'listing_id': listing_id, 'likes': likes})
    except Exception as e:
        return handle_error(e)


@api.route('/marketplace/<listing_id>/chats', methods=['POST'])
@require_auth
def open_chat(listing_id):
    """Start (or resume) a conversation with the seller"""
    try:
        result = get_services().chats.create_chat(listing_id, current_user_id())
        return jsonify(result), 201 if result['created'] else 200
    except Exception as e:
        return handle_error(e)


# ============= CHAT ENDPOINTS =============

@api.route('/chats', methods=['GET'])
@require_auth
def get_my_chats():
    try:
        return jsonify({'chats': get_services().chats.get_user_chats(current_user_id())})
    except Exception as e:
        return handle_error(e)


@api.route('/chats/<chat_id>/messages', methods=['GET'])
@require_auth
def get_chat_messages(chat_id):
    try:
        messages = get_services().chats.get_chat_messages(chat_id, current_user_id())
        return jsonify({'chat_id': chat_id, 'messages': messages})
    except Exception as e:
        return handle_error(e)


@api.route('/chats/<chat_id>/messages', methods=['POST'])
@require_auth
def send_message(chat_id):
    try:
        data = request.get_json(silent=True) or {}
        result = get_services().chats.send_message(chat_id, current_user_id(), data.get('message', ''))
        return jsonify(result), 201
    except Exception as e:
        return handle_error(e)


# ============= LEADERBOARD ENDPOINTS =============

@api.route('/leaderboard', methods=['GET'])
@require_auth
def get_leaderboard():
    """Student or school rankings"""
    try:
        leaderboard = get_services().leaderboard.get_leaderboard(
            scope=request.args.get('scope', 'users'),
            limit=_limit_arg(None),
            current_user_id=current_user_id()
        )
        return jsonify(leaderboard)
    except Exception as e:
        return handle_error(e)


# ============= UPLOAD ENDPOINTS =============

@api.route('/uploads/<kind>', methods=['POST'])
@require_auth
def upload_image(kind):
    """Resize and store an image, returning its download URL"""
    try:
        if kind not in IMAGE_KINDS:
            raise ValidationError(f"Image kind must be one of: {', '.join(IMAGE_KINDS)}", field='kind')
        upload = request.files.get('file')
        if upload is None:
            raise ValidationError("Multipart field 'file' required", field='file')

        result = get_services().storage.upload_image(
            kind,
            current_user_id(),
            upload.filename,
            upload.read()
        )
        return jsonify(result), 201
    except Exception as e:
        return handle_error(e)


@api.route('/uploads', methods=['DELETE'])
@require_auth
def delete_image():
    try:
        data = request.get_json(silent=True) or {}
        url = data.get('url') or request.args.get('url')
        return jsonify(get_services().storage.delete_image(url, current_user_id()))
    except Exception as e:
        return handle_error(e)
