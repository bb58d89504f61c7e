[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "metricmodel"
version = "0.1.0"
description = "Metric data model, label fingerprinting, name escaping and text exposition format parsing for monitoring systems"
requires-python = ">=3.10"
dependencies = []
keywords = ["metrics", "monitoring", "exposition", "labels", "fingerprint", "alerts"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["metricmodel"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
