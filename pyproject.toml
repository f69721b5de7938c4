[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "daqpy"
version = "0.1.0"
description = "Dual active-set solver for quadratic, linear and mixed-binary programs, with rotary pendulum control helpers"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "quadratic programming",
    "linear programming",
    "optimization",
    "active set",
    "branch and bound",
    "inverted pendulum",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["daqpy"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
