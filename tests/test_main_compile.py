import py_compile
from pathlib import Path


def test_entrypoint_modules_compile() -> None:
    """The socket-facing modules should at least be syntactically valid.

    They are only exercised against a live service, so compiling them here
    catches a broken entry point without opening a connection.
    """

    py_compile.compile(Path("chatsync/main.py"), doraise=True)
    py_compile.compile(Path("chatsync/client.py"), doraise=True)
    py_compile.compile(Path("chatsync/adapters/websocket.py"), doraise=True)
