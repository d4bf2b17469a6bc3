from app.clients.platform_api import PlatformAPIClient, caller_token, encode_params

__all__ = ["PlatformAPIClient", "caller_token", "encode_params"]
