from abc import ABC, abstractmethod
from typing import List, Optional


class Dialogs(ABC):
    """What the controllers may ask of the user.

    ``prompt`` returns the edited text, or None when the user cancelled.
    """

    @abstractmethod
    def alert(self, message: str) -> None:
        ...

    @abstractmethod
    def confirm(self, message: str) -> bool:
        ...

    @abstractmethod
    def prompt(self, message: str, default: str = "") -> Optional[str]:
        ...


class AnsweredDialogs(Dialogs):
    """Dialogs for request/response clients.

    The answer to a confirm or prompt travels with the request that triggers
    it, so it is set with ``expect`` beforehand. Alerts queue up in
    ``messages`` until the next response drains them.
    """

    def __init__(self) -> None:
        self.messages: List[str] = []
        self._confirm = False
        self._text: Optional[str] = None
        self.last_prompt: Optional[str] = None

    def expect(self, confirm: bool = False, text: Optional[str] = None) -> None:
        self._confirm = confirm
        self._text = text

    def alert(self, message: str) -> None:
        self.messages.append(message)

    def confirm(self, message: str) -> bool:
        answer, self._confirm = self._confirm, False
        return answer

    def prompt(self, message: str, default: str = "") -> Optional[str]:
        self.last_prompt = message
        answer, self._text = self._text, None
        return answer

    def drain(self) -> List[str]:
        messages, self.messages = self.messages, []
        return messages
