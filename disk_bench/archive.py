"""JSON archive of raw fio documents."""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

from .metrics import extract_json_text

logger = logging.getLogger(__name__)


class ArchiveWriter:
    """
    Write raw fio documents as one JSON array, one element per test case.

    The opening bracket is written on construction and each document is
    appended as soon as its run finishes, so an interrupted sweep leaves
    every completed result on disk (only the closing bracket is missing).
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.count = 0
        self.closed = False
        with open(self.path, "w") as f:
            f.write("[\n")

    def append(self, raw: str) -> None:
        """
        Append one raw fio document.

        Only the JSON object is written, without any warning lines fio
        printed around it. Output that holds no object (fio failed before
        printing one) is stored as ``null`` so the array keeps one slot per
        test case.
        """
        document = extract_json_text(raw)
        if document is None:
            logger.warning("fio output for result %d is not JSON; archiving null", self.count + 1)
            document = "null"
        with open(self.path, "a") as f:
            if self.count:
                f.write(",\n")
            f.write(document)
            f.write("\n")
        self.count += 1

    def close(self) -> None:
        if self.closed:
            return
        with open(self.path, "a") as f:
            f.write("]\n")
        self.closed = True


def load_archive(path: Union[str, Path]) -> List[Optional[Any]]:
    """
    Load an archive written by ArchiveWriter.

    An archive from an aborted sweep lacks its closing bracket; it is
    completed before parsing.
    """
    text = Path(path).read_text().strip()
    if text.startswith("[") and not text.endswith("]"):
        text = text.rstrip(",\n ") + "\n]"
    documents = json.loads(text)
    if not isinstance(documents, list):
        raise ValueError(f"{path} does not contain a JSON array")
    return documents
