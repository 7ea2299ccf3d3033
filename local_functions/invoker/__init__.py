from local_functions.invoker.runner import invoke_function, node_command, parse_output

__all__ = ["invoke_function", "node_command", "parse_output"]
