[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "burrowapi"
version = "0.1.0"
description = "HTTP API layer for a Kafka consumer lag monitor: cluster, topic and consumer endpoints, config inspection and Prometheus metrics"
requires-python = ">=3.10"
dependencies = []
keywords = ["kafka", "consumer-lag", "monitoring", "prometheus", "http-api"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
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
packages = ["burrowapi"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
