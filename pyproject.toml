[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "opencode-gateway"
version = "0.1.0"
description = "Launcher and supervisor for an OpenCode server running the local gateway plugin, plus the typed execution model used by gateway hosts."
requires-python = ">=3.10"
keywords = ["opencode", "gateway", "launcher", "supervisor", "plugin"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Operating System :: MacOS",
    "Operating System :: Microsoft :: Windows",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
opencode-gateway-launcher = "opencode_gateway.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["opencode_gateway"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
