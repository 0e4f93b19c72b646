import os
import tempfile
from pathlib import Path


def sanitize_name(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in name)


def atomic_write(path: Path, content: str, *, encoding: str = "utf-8", mode: int | None = None) -> None:
    """Atomically write a file (temp file in the same directory + os.replace).

    Readers see either the previous content or the new content, never a
    partially written file.

    Args:
        path: Target file path. The parent directory must exist.
        content: Text to write.
        encoding: Text encoding.
        mode: Optional POSIX permission bits applied before the rename.

    Raises:
        OSError: On write failure. The temp file is removed and the target is untouched.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    temp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None and os.name == "posix":
            temp_path.chmod(mode)
        # os.replace is atomic on POSIX and Windows for same-volume paths
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
