"""
Run Octave/MATLAB-style scripts and recover their variables as typed values.
"""
from mocktave.mocktave_datatypes import (
    MocktaveError, GatewayFailure, SynthesisError,
    ExtractionError, VariableNotFound, TypeMismatch,
    Value, Scalar, Boolean, Text, Matrix, Cell, Undefined, to_value,
)
from mocktave.mocktave_workspace import Workspace
from mocktave.mocktave_parser import DumpParser, parse_dump
from mocktave.mocktave_printer import Printer
from mocktave.mocktave_call import OUTPUT_NAME, build_call, parse_literal, read_call
from mocktave.mocktave_gateway import Gateway, LocalGateway, DockerGateway, HttpGateway
from mocktave.mocktave_config import GatewayConfig, load_config, make_gateway
from mocktave.mocktave_runtime import ExecutionResult, Interpreter, run_script, wrap

__all__ = [
    "MocktaveError", "GatewayFailure", "SynthesisError",
    "ExtractionError", "VariableNotFound", "TypeMismatch",
    "Value", "Scalar", "Boolean", "Text", "Matrix", "Cell", "Undefined", "to_value",
    "Workspace", "DumpParser", "parse_dump", "Printer",
    "OUTPUT_NAME", "build_call", "parse_literal", "read_call",
    "Gateway", "LocalGateway", "DockerGateway", "HttpGateway",
    "GatewayConfig", "load_config", "make_gateway",
    "ExecutionResult", "Interpreter", "run_script", "wrap",
]
