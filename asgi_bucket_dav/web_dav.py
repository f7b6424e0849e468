import asyncio
import html
from logging import getLogger

from asgi_bucket_dav import __version__
from asgi_bucket_dav.collection import (
    exists,
    get_collection_custom_metadata,
    is_collection,
    list_children,
    require_parent_collection,
)
from asgi_bucket_dav.config import Config
from asgi_bucket_dav.constants import (
    DAV_HEADER_ALLOW,
    DAV_HEADER_DAV_CLASS,
    DAVDepth,
    DAVMethod,
    DAVResourceKey,
    DAVResponseContentType,
    DAVTime,
)
from asgi_bucket_dav.exceptions import (
    DAVExceptionBadRequest,
    DAVExceptionConflict,
    DAVExceptionForbidden,
    DAVExceptionLocked,
    DAVExceptionMethodNotAllowed,
    DAVExceptionNotFound,
    DAVExceptionPreconditionFailed,
    DAVExceptionUnsupportedMediaType,
    DAVExceptionXMLParseFailed,
)
from asgi_bucket_dav.lock import DAVLockInfo, DAVLockManager
from asgi_bucket_dav.property import (
    get_href,
    render_multistatus,
    render_propfind_entry,
    render_proppatch_entry,
)
from asgi_bucket_dav.request import DAVRequest
from asgi_bucket_dav.response import DAVResponse, DAVResponseMethodNotAllowed
from asgi_bucket_dav.store import create_lock_store, create_object_store
from asgi_bucket_dav.store.base import DAVLockStore, DAVObjectStore, DAVStoreObject
from asgi_bucket_dav.xml import list_declared_namespaces, parse_xml

logger = getLogger(__name__)

_CONTENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>Index of {}</title>
  <style>
    table {{ table-layout: auto;width: 100%; }}
    tbody tr:nth-of-type(even) {{ background-color: #f3f3f3; }}
    .align-left {{ text-align: left; }}
    .align-right {{ text-align: right; }}
  </style>
</head>
<body>
  <header>
    <h1>Index of <small>{}</small></h1>
  </header>
  <hr>
  <main>
  <table>
  <thead>
    <tr>
    <th class="align-left">Name</th><th class="align-left">Type</th>
    <th class="align-right">Size</th><th class="align-right">Last modified</th>
    </tr>
  </thead>
  <tbody>{}</tbody>
  </table>
  </main>
  <hr>
  <footer>
    ASGI Bucket DAV: v{},
    <small>current time: {}</small>
  </footer>
</body>
</html>"""

_CONTENT_TBODY_DIR_TEMPLATE = """<tr><td><a href="{}"><b>{}</b></a></td><td>{}</td>
<td class="align-right">{}</td><td class="align-right">{}</td></tr>"""
_CONTENT_TBODY_FILE_TEMPLATE = """<tr><td><a href="{}">{}</a></td><td>{}</td>
<td class="align-right">{}</td><td class="align-right">{}</td></tr>"""


class WebDAV:
    store: DAVObjectStore
    lock_manager: DAVLockManager

    def __init__(
        self,
        config: Config,
        store: DAVObjectStore | None = None,
        lock_store: DAVLockStore | None = None,
    ):
        if store is None:
            store = create_object_store(config.store.uri, config.store.list_limit)
        if lock_store is None:
            lock_store = create_lock_store(config.lock_store.uri)

        self.store = store
        self.lock_manager = DAVLockManager(lock_store)

        # init dir browser config
        self.enable_dir_browser = config.enable_dir_browser

    async def distribute(self, request: DAVRequest) -> DAVResponse:
        logger.debug(request)

        match request.method:
            # high freq interface ---
            case DAVMethod.HEAD:
                response = await self.do_head(request)

            case DAVMethod.GET:
                response = await self.do_get(request)

            case DAVMethod.PROPFIND:
                response = await self.do_propfind(request)

            case DAVMethod.PROPPATCH:
                response = await self.do_proppatch(request)

            case DAVMethod.LOCK:
                response = await self.do_lock(request)

            case DAVMethod.UNLOCK:
                response = await self.do_unlock(request)

            # low freq interface ---
            case DAVMethod.MKCOL:
                response = await self.do_mkcol(request)

            case DAVMethod.DELETE:
                response = await self.do_delete(request)

            case DAVMethod.PUT:
                response = await self.do_put(request)

            case DAVMethod.COPY:
                response = await self.do_copy(request)

            case DAVMethod.MOVE:
                response = await self.do_move(request)

            # other interface ---
            case DAVMethod.OPTIONS:
                response = await self.do_options(request)

            case _:
                response = DAVResponseMethodNotAllowed(
                    self._get_raw_method(request)
                )

        return response

    @staticmethod
    def _get_raw_method(request: DAVRequest) -> str:
        return request.scope.get("method", request.method.value)

    async def do_options(self, request: DAVRequest) -> DAVResponse:
        return DAVResponse(
            status=204,
            headers={
                b"Allow": DAV_HEADER_ALLOW,
                b"DAV": DAV_HEADER_DAV_CLASS,
            },
            response_type=DAVResponseContentType.ANY,
        )

    """
    https://tools.ietf.org/html/rfc4918#page-48
    9.4.  GET, HEAD for Collections

       The semantics of GET are unchanged when applied to a collection,
       since GET is defined as, "retrieve whatever information (in the form
       of an entity) is identified by the Request-URI" [RFC2616].  GET, when
       applied to a collection, may return the contents of an "index.html"
       resource, a human-readable view of the contents of the collection, or
       something else altogether.  Hence, it is possible that the result of
       a GET on a collection will bear no correlation to the membership of
       the collection.
    """

    async def do_get(self, request: DAVRequest) -> DAVResponse:
        if request.trailing_slash and self.enable_dir_browser:
            return await self._do_get_index(request)

        if request.src_path.is_root:
            raise DAVExceptionNotFound()

        obj = await self.store.get(
            request.src_path.raw,
            conditional=request.conditional,
            request_range=request.content_range,
        )
        if obj is None:
            raise DAVExceptionNotFound()

        headers = obj.http_metadata.get_response_headers()
        headers.update(
            {
                b"ETag": obj.http_etag.encode("utf-8"),
                b"Last-Modified": DAVTime(obj.uploaded).http_date().encode("utf-8"),
                b"Accept-Ranges": b"bytes",
            }
        )
        if obj.body is None:
            # conditional request failed
            return DAVResponse(
                304, headers=headers, response_type=DAVResponseContentType.ANY
            )

        return DAVResponse(
            206 if obj.content_range else 200,
            headers=headers,
            content=obj.body,
            content_range=obj.content_range,
            response_type=DAVResponseContentType.ANY,
        )

    async def do_head(self, request: DAVRequest) -> DAVResponse:
        response = await self.do_get(request)
        return response.to_head_response()

    async def _do_get_index(self, request: DAVRequest) -> DAVResponse:
        root_path = request.src_path
        if root_path.is_root:
            tbody_parent = ""
        else:
            tbody_parent = _CONTENT_TBODY_DIR_TEMPLATE.format(
                "../", "..", "-", "-", "-"
            )

        tbody_dir = ""
        tbody_file = ""
        async for obj in list_children(self.store, root_path):
            key = DAVResourceKey(obj.key)
            display_name = html.escape(obj.http_metadata.content_disposition or key.name)
            last_modified = DAVTime(obj.uploaded).ui_display()
            if obj.is_collection:
                tbody_dir += _CONTENT_TBODY_DIR_TEMPLATE.format(
                    get_href(key, True),
                    display_name,
                    "collection",
                    "-",
                    last_modified,
                )
            else:
                tbody_file += _CONTENT_TBODY_FILE_TEMPLATE.format(
                    get_href(key, False),
                    display_name,
                    html.escape(obj.http_metadata.content_type or "-"),
                    f"{obj.size:,}",
                    last_modified,
                )

        title = html.escape(root_path.href(True))
        content = _CONTENT_TEMPLATE.format(
            title,
            title,
            tbody_parent + tbody_dir + tbody_file,
            __version__,
            DAVTime().ui_display(),
        )
        return DAVResponse(200, content=content.encode("utf-8"))

    """
    https://tools.ietf.org/html/rfc4918#page-50
    9.7.1.  PUT for Non-Collection Resources

       A PUT that would result in the creation of a resource without an
       appropriately scoped parent collection MUST fail with a 409
       (Conflict).
    """

    async def do_put(self, request: DAVRequest) -> DAVResponse:
        if request.src_path.is_root or request.trailing_slash:
            raise DAVExceptionMethodNotAllowed("Can not PUT a collection")

        await require_parent_collection(self.store, request.src_path)

        if is_collection(await exists(self.store, request.src_path)):
            raise DAVExceptionMethodNotAllowed("Can not PUT on a collection")

        body = await request.receive_body()
        obj = await self.store.put(
            request.src_path.raw, body, http_metadata=request.get_http_metadata()
        )
        return DAVResponse(
            201,
            headers={b"ETag": obj.http_etag.encode("utf-8")},
            response_type=DAVResponseContentType.ANY,
        )

    """
    https://tools.ietf.org/html/rfc4918#page-46
    9.3.1.  MKCOL Status Codes

       201 (Created) - The collection was created.

       405 (Method Not Allowed) - MKCOL can only be executed on an unmapped
       URL.

       409 (Conflict) - A collection cannot be made at the Request-URI until
       one or more intermediate collections have been created.

       415 (Unsupported Media Type) - The server does not support the
       request body type (although bodies are legal on MKCOL requests, since
       this specification doesn't define any, the server is likely not to
       support any given body type).
    """

    async def do_mkcol(self, request: DAVRequest) -> DAVResponse:
        if request.src_path.is_root:
            raise DAVExceptionMethodNotAllowed("Collection already exists")

        if await exists(self.store, request.src_path) is not None:
            raise DAVExceptionMethodNotAllowed("Resource already exists")

        await require_parent_collection(self.store, request.src_path)

        body = await request.receive_body()
        if len(body) > 0:
            raise DAVExceptionUnsupportedMediaType("MKCOL does not support body")

        await self.store.put(
            request.src_path.raw,
            b"",
            http_metadata=request.get_http_metadata(),
            custom_metadata=get_collection_custom_metadata(),
        )
        return DAVResponse(201, response_type=DAVResponseContentType.ANY)

    async def do_delete(self, request: DAVRequest) -> DAVResponse:
        if request.src_path.is_root:
            # every key in the store
            await self._delete_tree(request.src_path)
            return DAVResponse(204, response_type=DAVResponseContentType.ANY)

        obj = await exists(self.store, request.src_path)
        if obj is None:
            raise DAVExceptionNotFound()

        await self.store.delete(obj.key)
        if obj.is_collection:
            await self._delete_tree(request.src_path)

        return DAVResponse(204, response_type=DAVResponseContentType.ANY)

    async def _delete_tree(self, key: DAVResourceKey) -> None:
        """delete every descendant of key, one page per batch"""
        lister = list_children(self.store, key, recursive=True)
        while not lister.exhausted:
            objs = await lister.fetch_page()
            if len(objs) > 0:
                await self.store.delete([obj.key for obj in objs])

    async def do_propfind(self, request: DAVRequest) -> DAVResponse:
        if not request.depth_is_parsed_success:
            raise DAVExceptionForbidden("Unsupported Depth")

        depth = DAVDepth.infinity if request.depth is None else request.depth

        responses = list()
        if request.src_path.is_root:
            responses.append(render_propfind_entry(None))
            collection = True

        else:
            obj = await exists(self.store, request.src_path)
            if obj is None:
                raise DAVExceptionNotFound()

            responses.append(
                render_propfind_entry(
                    obj, await self.lock_manager.lookup(request.src_path)
                )
            )
            collection = obj.is_collection

        if collection and depth != DAVDepth.d0:
            async for child in list_children(
                self.store, request.src_path, recursive=depth == DAVDepth.infinity
            ):
                responses.append(
                    render_propfind_entry(
                        child,
                        await self.lock_manager.lookup(DAVResourceKey(child.key)),
                    )
                )

        return DAVResponse(
            207,
            content=render_multistatus(responses),
            response_type=DAVResponseContentType.XML,
        )

    """
    https://tools.ietf.org/html/rfc4918#page-44
    9.2.  PROPPATCH Method

       200 (OK) - The property set or change succeeded.  Note that if this
       appears for one property, it appears for every property in the
       response, due to the atomicity of PROPPATCH.
    """

    async def do_proppatch(self, request: DAVRequest) -> DAVResponse:
        body = await request.receive_body()
        try:
            root = parse_xml(body, keep_prefix=True)
            namespaces = list_declared_namespaces(body)

        except DAVExceptionXMLParseFailed as e:
            logger.warning(f"{e}, xml: {body!r}")
            raise DAVExceptionBadRequest("PROPPATCH body is not valid XML")

        if root.name != "propertyupdate":
            logger.warning(f"PROPPATCH failed, miss propertyupdate: {body!r}")
            raise DAVExceptionBadRequest("Miss propertyupdate")

        names = list()
        for action in root.children:
            if action.name not in ("set", "remove"):
                continue

            prop = action.find("prop")
            if prop is None:
                continue

            names += [child.name for child in prop.children]

        return DAVResponse(
            207,
            content=render_multistatus(
                [
                    render_proppatch_entry(
                        request.src_path, names, request.trailing_slash
                    )
                ],
                namespaces=namespaces,
            ),
            response_type=DAVResponseContentType.XML,
        )

    async def do_lock(self, request: DAVRequest) -> DAVResponse:
        if request.src_path.is_root:
            raise DAVExceptionMethodNotAllowed("Can not LOCK the root collection")

        if await self.lock_manager.lookup(request.src_path) is not None:
            raise DAVExceptionLocked(f"Already locked: {request.src_path}")

        body = await request.receive_body()
        info = DAVLockInfo.from_xml(body)
        lock_obj = await self.lock_manager.acquire(request.src_path, info)

        return DAVResponse(
            201,
            headers={b"Lock-Token": lock_obj.token.encode("utf-8")},
            content=lock_obj.get_response_body(),
            response_type=DAVResponseContentType.XML,
        )

    async def do_unlock(self, request: DAVRequest) -> DAVResponse:
        # TODO: compare request.lock_token with the stored lock token
        logger.debug(f"Unlock {request.src_path}, token: {request.lock_token}")
        await self.lock_manager.release(request.src_path)
        return DAVResponse(204, response_type=DAVResponseContentType.ANY)

    """
    https://tools.ietf.org/html/rfc4918#page-63
    9.8.5.  Status Codes

       201 (Created) - The source resource was successfully copied.  The
       COPY operation resulted in the creation of a new resource.

       204 (No Content) - The source resource was successfully copied to a
       preexisting destination resource.

       403 (Forbidden) - The operation is forbidden.  A special case for
       COPY could be that the source and destination resources are the same
       resource.

       409 (Conflict) - A resource cannot be created at the destination
       until one or more intermediate collections have been created.

       412 (Precondition Failed) - A precondition header check failed, e.g.,
       the Overwrite header is "F" and the destination URL is already mapped
       to a resource.
    """

    async def do_copy(self, request: DAVRequest) -> DAVResponse:
        return await self._do_copy_move(request, is_move=False)

    async def do_move(self, request: DAVRequest) -> DAVResponse:
        return await self._do_copy_move(request, is_move=True)

    async def _do_copy_move(self, request: DAVRequest, is_move: bool) -> DAVResponse:
        src_path = request.src_path
        dst_path = request.dst_path
        if dst_path is None or not request.dst_path_is_parsed_success:
            raise DAVExceptionBadRequest("Miss or invalid Destination")
        if dst_path.is_root:
            raise DAVExceptionBadRequest("Destination can not be the root")

        await require_parent_collection(self.store, dst_path)

        dst_obj = await exists(self.store, dst_path)
        if dst_obj is not None:
            if is_move and request.overwrite is not True:
                raise DAVExceptionPreconditionFailed("Destination exists")
            if not is_move and request.overwrite is False:
                raise DAVExceptionPreconditionFailed("Destination exists")

        src_obj = await exists(self.store, src_path)
        if src_obj is None:
            raise DAVExceptionNotFound()

        if is_move and src_path == dst_path:
            raise DAVExceptionBadRequest("Source and destination are the same")

        depth = DAVDepth.d0
        if src_obj.is_collection:
            if not request.depth_is_parsed_success or request.depth == DAVDepth.d1:
                raise DAVExceptionBadRequest("Unsupported Depth")
            if request.depth is None:
                depth = DAVDepth.infinity
            else:
                depth = request.depth

            if dst_path.is_inside(src_path):
                raise DAVExceptionBadRequest("Destination is inside source")

        if is_move and dst_obj is not None:
            if src_path.is_inside(dst_path):
                raise DAVExceptionConflict("Source is inside destination")

            await self.store.delete(dst_obj.key)
            if dst_obj.is_collection:
                await self._delete_tree(dst_path)

        if depth == DAVDepth.infinity:
            await self._transfer_tree(src_obj, src_path, dst_path, is_move)
        else:
            await self._transfer(src_obj, dst_path, is_move)

        if dst_obj is None:
            return DAVResponse(201, response_type=DAVResponseContentType.ANY)

        return DAVResponse(204, response_type=DAVResponseContentType.ANY)

    async def _transfer(
        self, obj: DAVStoreObject, dst_path: DAVResourceKey, remove_source: bool
    ) -> None:
        src = await self.store.get(obj.key)
        if src is None or src.body is None:
            logger.warning(f"Source vanished during transfer: {obj.key}")
            return

        await self.store.put(
            dst_path.raw,
            src.body,
            http_metadata=src.http_metadata,
            custom_metadata=src.custom_metadata,
        )
        if remove_source:
            await self.store.delete(obj.key)

    async def _transfer_tree(
        self,
        src_obj: DAVStoreObject,
        src_path: DAVResourceKey,
        dst_path: DAVResourceKey,
        remove_source: bool,
    ) -> None:
        """every object of the subtree is transferred concurrently,
        the first failure cancels the others, nothing is rolled back
        """
        async with asyncio.TaskGroup() as tg:
            tg.create_task(self._transfer(src_obj, dst_path, remove_source))

            async for child in list_children(self.store, src_path, recursive=True):
                child_dst_path = dst_path.add_child(
                    DAVResourceKey(child.key).get_child(src_path)
                )
                tg.create_task(self._transfer(child, child_dst_path, remove_source))
