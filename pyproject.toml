[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "twigsize"
version = "0.1.0"
description = "Code size profiling analyses over an item graph: top items, dominators, retaining paths, monomorphizations, garbage and diffs"
requires-python = ">=3.10"
dependencies = []
keywords = ["code size", "profiler", "dominator tree", "retained size", "binary analysis"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Debuggers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["twigsize"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
