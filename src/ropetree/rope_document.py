import logging

from Qt.QtCore import Signal, Slot
from Qt.QtGui import QTextCursor, QTextDocument
from Qt.QtWidgets import QPlainTextDocumentLayout

from .rope import CHUNK_SIZE, MAX_HEIGHT, Rope, delete_range, insert, rebalance

logger = logging.getLogger(__name__)

# selectedText() keeps Qt's internal separators, toPlainText() does not
_PLAIN_TEXT_MAP = {
    0x2029: "\n",  # paragraph separator
    0x2028: "\n",  # line separator
    0xFDD0: "\n",  # frame start
    0xFDD1: "\n",  # frame end
    0x00A0: " ",  # nbsp
}


class RopeDocument(QTextDocument):
    """QTextDocument subclass that mirrors its text into a persistent Rope.

    Every change to the document produces a new Rope version. Versions that
    were handed out earlier are never modified, so a caller can hold on to
    them to look at older text.

    The rope is rebalanced whenever its height passes max_height. With
    auto_rebalance it is rebalanced after any change that unbalances it.

    Signals:
        ropeChanged(Rope): Emitted with the new version after each change
    """

    ropeChanged = Signal(object)

    def __init__(
        self,
        parent=None,
        auto_rebalance: bool = False,
        chunk_size: int = CHUNK_SIZE,
        max_height: int = MAX_HEIGHT,
    ):
        super().__init__(parent)
        self.auto_rebalance: bool = auto_rebalance
        self.chunk_size: int = chunk_size
        self.max_height: int = max_height
        self.cursor = QTextCursor(self)
        self._rope: Rope = Rope.from_text(self.toPlainText(), chunk_size)

        # contentsChange is only emitted once the document has a layout
        self.lay = QPlainTextDocumentLayout(self)
        self.setDocumentLayout(self.lay)
        self.contentsChange.connect(self._on_contents_change)

    @property
    def rope(self) -> Rope:
        """The rope for the current text"""
        return self._rope

    def snapshot(self) -> Rope:
        return self._rope

    def text_length(self) -> int:
        """The number of characters, not counting the final block separator"""
        return self.characterCount() - 1

    def get_char_range(self, start: int, count: int) -> str:
        """Get the text in [start, start + count) the way toPlainText has it"""
        self.cursor.setPosition(start)
        self.cursor.setPosition(start + count, QTextCursor.KeepAnchor)
        return self.cursor.selectedText().translate(_PLAIN_TEXT_MAP)

    @Slot(int, int, int)
    def _on_contents_change(self, position: int, chars_removed: int, chars_added: int):
        """Apply a document change to the rope

        Args:
            position: Character position where change occurred
            chars_removed: Number of characters removed
            chars_added: Number of characters added
        """
        old_len = len(self._rope)
        new_len = self.text_length()

        # Qt counts the implicit final block separator in some changes
        # (eg: setPlainText), which the rope does not hold
        position = min(position, old_len)
        chars_removed = min(chars_removed, old_len - position)
        chars_added = new_len - old_len + chars_removed
        chars_added = max(0, min(chars_added, new_len - position))

        root = self._rope.root
        if chars_removed:
            root = delete_range(root, position, position + chars_removed)
        if chars_added:
            root = insert(root, self.get_char_range(position, chars_added), position)

        if root.height() > self.max_height or (
            self.auto_rebalance and not root.is_balanced()
        ):
            root = rebalance(root, self.chunk_size)

        logger.debug(
            "Mirrored change at %s: -%s +%s", position, chars_removed, chars_added
        )
        self._rope = Rope(root)
        self.ropeChanged.emit(self._rope)
