"""
    Path inspector: reads the current on-disk state of a path.

    This is "facts" only. Nothing here knows about rules or decides PASS/FAIL;
    the evaluator does that with what we return.

    A missing path or a denied lookup is a normal outcome, not an exception:
    an audit has to report on targets it cannot reach instead of stopping.
"""
from __future__ import annotations

import errno
import logging
import os
import stat

from core.models import AccessError, Kind, PathObservation

logger = logging.getLogger(__name__)


def classify_error(exc: OSError) -> AccessError:
    """Map an OSError to the access_error vocabulary used by observations."""
    if isinstance(exc, FileNotFoundError) or exc.errno in (errno.ENOENT, errno.ENOTDIR):
        return "NOT_FOUND"
    if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM):
        return "PERMISSION_DENIED"
    return "OTHER"


def describe_error(exc: OSError) -> str:
    return f"{type(exc).__name__}: {exc.strerror or exc}"


def _kind_of(st_mode: int) -> Kind:
    if stat.S_ISLNK(st_mode):
        return "SYMLINK"
    if stat.S_ISDIR(st_mode):
        return "DIRECTORY"
    # Regular files, devices, sockets and fifos are all audited as files.
    return "FILE"


def _failed(path: str, exc: OSError) -> PathObservation:
    access = classify_error(exc)
    logger.debug("inspect %s: %s (%s)", path, access, exc)
    return PathObservation(
        path=path,
        kind="MISSING" if access == "NOT_FOUND" else "UNKNOWN",
        access_error=access,
        error_detail=describe_error(exc),
    )


def inspect_path(path: str, resolve_symlinks: bool = True) -> PathObservation:
    """
    Return a PathObservation for `path`.

    Symlinks are described twice:
      - the link node itself (lstat): its own mode/owner plus link_target
      - when resolve_symlinks is set, `resolved` holds an observation of
        whatever the link points at (MISSING for a dangling link)

    Ownership policy may apply to either one, so the evaluator picks.
    """
    try:
        st = os.lstat(path)
    except OSError as e:
        return _failed(path, e)
    except ValueError as e:
        # embedded NUL and similar: the OS never saw the path
        logger.debug("inspect %s: %s", path, e)
        return PathObservation(path=path, kind="UNKNOWN", access_error="OTHER",
                               error_detail=f"{type(e).__name__}: {e}")

    kind = _kind_of(st.st_mode)
    if kind != "SYMLINK":
        return PathObservation(
            path=path,
            kind=kind,
            mode=stat.S_IMODE(st.st_mode),
            uid=st.st_uid,
            gid=st.st_gid,
        )

    try:
        target = os.readlink(path)
    except OSError as e:
        return _failed(path, e)

    resolved = None
    if resolve_symlinks:
        real = os.path.realpath(path)
        try:
            rst = os.stat(path)
        except OSError as e:
            # ELOOP (link cycle) ends up as OTHER, a dangling link as NOT_FOUND
            resolved = _failed(real, e)
        else:
            resolved = PathObservation(
                path=real,
                kind=_kind_of(rst.st_mode),
                mode=stat.S_IMODE(rst.st_mode),
                uid=rst.st_uid,
                gid=rst.st_gid,
            )

    return PathObservation(
        path=path,
        kind="SYMLINK",
        mode=stat.S_IMODE(st.st_mode),
        uid=st.st_uid,
        gid=st.st_gid,
        link_target=target,
        resolved=resolved,
    )


def canonical_path(path: str, follow_symlinks: bool) -> str:
    """
    Key used for cycle detection and de-duplication.

    When following links this is the fully resolved path. When not following,
    only the parent is resolved so a link node and the file it points to stay
    two distinct entries.
    """
    if follow_symlinks:
        return os.path.realpath(path)
    parent, name = os.path.split(os.path.abspath(path))
    return os.path.join(os.path.realpath(parent), name)


def list_children(path: str) -> list[str]:
    """Child paths of a directory, sorted by name. Raises OSError."""
    return [os.path.join(path, name) for name in sorted(os.listdir(path))]
