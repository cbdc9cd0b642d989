import json

import pytest
from google.api_core import exceptions as gcp_exceptions

from greenquest.schemas import ListingCreate
from greenquest.utils.error_handler import (
    ConflictError,
    NotFoundError,
    ValidationError,
    handle_error,
    parse_request,
)


@pytest.fixture
def app_context(app):
    with app.app_context():
        yield


def _body(response):
    return json.loads(response.get_data())


class TestHandleError:

    def test_greenquest_errors_keep_status(self, app_context):
        response, status = handle_error(NotFoundError("Listing not found"))
        assert status == 404
        assert _body(response) == {'error': 'Listing not found', 'error_code': 'NOT_FOUND', 'status': 'error'}

        _, status = handle_error(ConflictError("Email already exists"))
        assert status == 409

    def test_schema_errors_list_fields(self, app_context):
        try:
            ListingCreate.model_validate({'title': 'Bike', 'price': 5, 'condition': 'Good', 'description': 'Nice bike for sale'})
        except Exception as e:
            response, status = handle_error(e)

        assert status == 400
        assert _body(response)['details'][0]['field'] == 'title'

    def test_google_api_errors_are_503(self, app_context):
        _, status = handle_error(gcp_exceptions.ServiceUnavailable('down'))
        assert status == 503

    def test_unexpected_errors_are_500(self, app_context):
        response, status = handle_error(RuntimeError('boom'))
        assert status == 500
        assert _body(response)['error_code'] == 'INTERNAL_ERROR'


class TestParseRequest:

    def test_empty_body(self):
        with pytest.raises(ValidationError):
            parse_request(ListingCreate, None)

    def test_valid_body(self):
        listing = parse_request(ListingCreate, {
            'title': 'Graphing Calculator',
            'price': 40,
            'condition': 'Like New',
            'description': 'TI-84 Plus, works great'
        })
        assert listing.meetup_location == 'School Cafeteria'
