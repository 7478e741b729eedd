"""
CommandRegistry - Explicit command registration for the tracker

Bounded Context: Command registration and validation
Responsibilities:
  - Register commands with handlers
  - Validate command existence before execution
  - Provide introspection (available_commands, get_help)

Every handler receives the full JSON payload of the command, so value-bearing
commands (set_step_goal, set_weight, set_height) and bare commands
(reset_steps, status) share one calling convention.

Threading: Thread-safe (uses lock for write operations)
"""

from typing import Any, Callable, Dict, Optional, Set
import threading


class CommandNotAvailableError(Exception):
    """Raised when attempting to execute an unregistered command"""
    pass


class CommandRegistry:
    """
    Registry for MQTT commands with explicit registration.

    Example:
        registry = CommandRegistry()
        registry.register('reset_steps', lambda data: session.reset(), "Reset daily steps")

        try:
            registry.execute('reset_steps', {'command': 'reset_steps'})
        except CommandNotAvailableError as e:
            print(f"Command not available: {e}")
    """

    def __init__(self):
        self._commands: Dict[str, Callable[[dict], Any]] = {}
        self._descriptions: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, command: str, handler: Callable[[dict], Any], description: str) -> None:
        """
        Register a command with its handler function.

        Raises:
            ValueError: If command already registered or name is not lowercase
        """
        if not command or command != command.lower() or ' ' in command:
            raise ValueError(f"Invalid command name: {command!r}")

        with self._lock:
            if command in self._commands:
                raise ValueError(f"Command '{command}' already registered")

            self._commands[command] = handler
            self._descriptions[command] = description

    def execute(self, command: str, command_data: Optional[dict] = None) -> Any:
        """
        Execute a registered command and return the handler's result.

        Raises:
            CommandNotAvailableError: If command not registered
        """
        handler = self._commands.get(command)
        if handler is None:
            raise CommandNotAvailableError(
                f"Command '{command}' not available. "
                f"Available commands: {', '.join(sorted(self.available_commands))}"
            )

        return handler(command_data if command_data is not None else {'command': command})

    def is_available(self, command: str) -> bool:
        return command in self._commands

    @property
    def available_commands(self) -> Set[str]:
        return set(self._commands.keys())

    def get_help(self) -> Dict[str, str]:
        """Get dict of commands with descriptions (snapshot copy)."""
        return dict(self._descriptions)

    def count(self) -> int:
        return len(self._commands)
