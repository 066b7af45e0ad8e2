from .http_client import HttpClient, UsersApi

__all__ = ["HttpClient", "UsersApi"]
