from abc import ABC, abstractmethod

from finance_tracker.models import ParsedCandidate


class TextParser(ABC):
    @abstractmethod
    def parse(self, text: str) -> list[ParsedCandidate]:
        """Extract candidate transactions from free-form text. Empty list when nothing is found."""
        pass
