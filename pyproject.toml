[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "indicator_datetime"
version = "0.1.0"
description = "Timezone tracking, wakeup timers and alarm notifications for a date-and-time indicator"
requires-python = ">=3.10"
dependencies = []
keywords = ["datetime", "alarm", "timezone", "notifications", "calendar", "indicator"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Scheduling",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["indicator_datetime"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
