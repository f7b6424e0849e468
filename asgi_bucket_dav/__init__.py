#!/usr/bin/env python


"""
ASGI Bucket DAV
"""

__name__ = "ASGIBucketDAV"
__version__ = "0.3.0"

__author__ = "Rex Zhang"
__author_email__ = "rex.zhang@gmail.com"
__licence__ = "MIT"

__description__ = (
    "An asynchronous WebDAV server that exposes a flat object store as a tree."
)
__project_url__ = "https://github.com/rexzhang/asgi-bucket-dav"
