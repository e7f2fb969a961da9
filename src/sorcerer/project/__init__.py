from .solution_tools import ProjectTools, common_namespace_prefix, is_test_file

__all__ = ["ProjectTools", "common_namespace_prefix", "is_test_file"]
