from mintstats.server.server import HTTPServer

__all__ = ["HTTPServer"]
