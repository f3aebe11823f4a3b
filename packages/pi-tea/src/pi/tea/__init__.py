"""pi-tea: Elm-architecture runtime for terminal applications."""

# Commands
from pi.tea import commands
from pi.tea.commands import Command, batch, cmd, every, sequence, tick

# Input decoding
from pi.tea.decoder import InputDecoder, ParserState, decode_csi

# Errors
from pi.tea.errors import (
    AlreadyRunningError,
    ExecProcessError,
    NotATTYError,
    ProgramError,
    ProgramInterruptedError,
    ProgramKilledError,
    ProgramPanicError,
    ProgramTerminalError,
    RawModeError,
    TerminalError,
)

# External processes
from pi.tea.exec import ExecCommand, FuncExecCommand, ProcessExecCommand

# Keyboard
from pi.tea.keys import KeyMsg, KeyType, key_name

# Logging
from pi.tea.log import log_to_file

# Messages
from pi.tea.messages import (
    BlurMsg,
    ExecFinishedMsg,
    FocusMsg,
    InterruptMsg,
    Msg,
    PasteMsg,
    QuitMsg,
    ResumeMsg,
    SuspendMsg,
    TickMsg,
    UnknownCSISequenceMsg,
    UnknownSequenceMsg,
    WindowSizeMsg,
)

# Mouse
from pi.tea.mouse import MouseAction, MouseButton, MouseMode, MouseMsg

# Program runtime
from pi.tea.program import Model, Program, ProgramOptions

# Rendering
from pi.tea.renderer import NilRenderer, Renderer, StandardRenderer

# Signals
from pi.tea.signals import Signal, SignalDispatcher, get_dispatcher

# Terminal
from pi.tea.terminal import ProcessTerminal, Terminal, TerminalSize, TerminalState

# Utilities
from pi.tea.utils import strip_ansi, truncate_to_width, visible_width

__all__ = [
    # Commands
    "commands",
    "Command",
    "batch",
    "cmd",
    "every",
    "sequence",
    "tick",
    # Input decoding
    "InputDecoder",
    "ParserState",
    "decode_csi",
    # Errors
    "AlreadyRunningError",
    "ExecProcessError",
    "NotATTYError",
    "ProgramError",
    "ProgramInterruptedError",
    "ProgramKilledError",
    "ProgramPanicError",
    "ProgramTerminalError",
    "RawModeError",
    "TerminalError",
    # External processes
    "ExecCommand",
    "FuncExecCommand",
    "ProcessExecCommand",
    # Keyboard
    "KeyMsg",
    "KeyType",
    "key_name",
    # Logging
    "log_to_file",
    # Messages
    "BlurMsg",
    "ExecFinishedMsg",
    "FocusMsg",
    "InterruptMsg",
    "Msg",
    "PasteMsg",
    "QuitMsg",
    "ResumeMsg",
    "SuspendMsg",
    "TickMsg",
    "UnknownCSISequenceMsg",
    "UnknownSequenceMsg",
    "WindowSizeMsg",
    # Mouse
    "MouseAction",
    "MouseButton",
    "MouseMode",
    "MouseMsg",
    # Program runtime
    "Model",
    "Program",
    "ProgramOptions",
    # Rendering
    "NilRenderer",
    "Renderer",
    "StandardRenderer",
    # Signals
    "Signal",
    "SignalDispatcher",
    "get_dispatcher",
    # Terminal
    "ProcessTerminal",
    "Terminal",
    "TerminalSize",
    "TerminalState",
    # Utilities
    "strip_ansi",
    "truncate_to_width",
    "visible_width",
]
