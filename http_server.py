#!/usr/bin/env python3
"""
SpotRelay HTTP Server Runner
"""

from spotrelay.interfaces.http import HTTPServer


def main():
    """Run the HTTP server."""
    server = HTTPServer()
    server.run()


if __name__ == '__main__':
    main()
