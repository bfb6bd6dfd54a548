"""Interactive prompts backed by rich."""

from typing import Optional, Sequence

from rich.prompt import IntPrompt, Prompt


class PromptService:
    """Thin wrapper over rich prompts so the pipeline can be driven by tests."""

    def __init__(self, console):
        self.console = console

    def ask(self, label: str, default: Optional[str] = None, password: bool = False) -> str:
        if default is None:
            return Prompt.ask(label, console=self.console, password=password)
        return Prompt.ask(
            label,
            console=self.console,
            password=password,
            default=default,
            show_default=not password,
        )

    def ask_int(self, label: str, default: Optional[int] = None) -> int:
        if default is None:
            return IntPrompt.ask(label, console=self.console)
        return IntPrompt.ask(label, console=self.console, default=default)

    def choose(self, label: str, choices: Sequence[str], default: Optional[str] = None) -> str:
        if default is None:
            return Prompt.ask(label, console=self.console, choices=list(choices))
        return Prompt.ask(label, console=self.console, choices=list(choices), default=default)
