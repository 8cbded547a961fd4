from rest_framework.throttling import SimpleRateThrottle


class LoginRateThrottle(SimpleRateThrottle):
    scope = 'login'  # Matches the 'login' key in DEFAULT_THROTTLE_RATES

    def get_cache_key(self, request, view):
        ident = self.get_ident(request)

        # Keyed per IP and username
        username = request.data.get('username', '') if hasattr(request, 'data') else ''
        if username:
            return f"login_throttle_{ident}_{username}"
        return f"login_throttle_{ident}"
