"""zessionizer Status Module - HTTP view of the ranked index."""

from .api import RecordRequest, app, bind, serve

__all__ = ['RecordRequest', 'app', 'bind', 'serve']
