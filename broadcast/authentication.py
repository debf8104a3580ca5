"""
Token authentication for staff clients.

The staff dashboard sends ``Authorization: Bearer <key>`` while scripts
and older clients use DRF's ``Token <key>``; both resolve against the
same ``rest_framework.authtoken`` keys.  Display kiosks do not
authenticate at all (their endpoints are ``AllowAny``).
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'
    keywords = ('Token', 'Bearer')

    def authenticate(self, request):
        auth = authentication.get_authorization_header(request).split()
        accepted = {k.lower().encode() for k in self.keywords}
        if not auth or auth[0].lower() not in accepted:
            return None
        if len(auth) == 1:
            raise exceptions.AuthenticationFailed('Invalid token header. No credentials provided.')
        if len(auth) > 2:
            raise exceptions.AuthenticationFailed('Invalid token header. Token string should not contain spaces.')
        try:
            key = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token header. Token string should not contain invalid characters.')
        return self.authenticate_credentials(key)
