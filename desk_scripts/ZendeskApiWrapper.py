import logging
import math
from collections import namedtuple

import requests

logger = logging.getLogger(__name__)

# Zendesk caps search pages at 100 results.
SEARCH_PER_PAGE = 100

SearchResults = namedtuple('SearchResults', ['results', 'count', 'total_pages'])


class APIError(Exception):
    """Raised for any non-2xx response. The response body is kept so error details can be extracted later."""

    def __init__(self, response):
        super().__init__(response)
        self.response = response

    def __str__(self):
        return f'Response code: {self.response.status_code}, body: {self.response.text}'


def join_ids(records):
    return ','.join(str(record['id']) for record in records)


class ZendeskApiWrapper:
    """
    Zendesk API wrapper covering the endpoints the bulk scripts need: search, bulk deletion
    of users and organizations, and user updates. Authenticates with HTTP Basic auth, where the
    password may be an API token (use `email/token` as the user name in that case).
    """

    def __init__(self, url, username, password, timeout=60):
        self.base_url = url.rstrip('/') + '/api/v2/'
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = (username, password)
        self.session.headers.update(
            {'Content-Type': 'application/json', 'Accept': 'application/json'}
        )

    def _request(self, method, endpoint, params=None, data=None):
        url = self.base_url + endpoint.lstrip('/')
        logger.debug(f'{method} {url} params={params}')
        response = self.session.request(
            method, url, params=params, json=data, timeout=self.timeout
        )
        if not response.ok:
            raise APIError(response)
        if not response.content:
            return {}
        return response.json()

    def get(self, endpoint, params=None):
        return self._request('GET', endpoint, params=params)

    def put(self, endpoint, data=None):
        return self._request('PUT', endpoint, data=data)

    def delete(self, endpoint, params=None):
        return self._request('DELETE', endpoint, params=params)

    def search(self, kind, query, page=1):
        resp = self.get(
            'search.json',
            params={
                'query': f'type:{kind} {query}',
                'page': page,
                'per_page': SEARCH_PER_PAGE,
            },
        )
        count = resp.get('count') or 0
        total_pages = int(math.ceil(float(count) / SEARCH_PER_PAGE))
        return SearchResults(resp.get('results', []), count, total_pages)

    def bulk_delete_users(self, users):
        # ids go into the url as-is, Zendesk expects literal commas
        return self.delete(f'users/destroy_many.json?ids={join_ids(users)}')

    def bulk_delete_organizations(self, organizations):
        return self.delete(
            f'organizations/destroy_many.json?ids={join_ids(organizations)}'
        )

    def update_user(self, user):
        return self.put(f'users/{user["id"]}.json', data={'user': user}).get('user')
