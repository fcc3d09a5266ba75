[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "carbonkube"
version = "0.1.0"
description = "Carbon-aware job scheduling: a forecast-driven schedule API and a reconciler for carbon-aware batch jobs"
requires-python = ">=3.10"
keywords = ["carbon", "scheduling", "kubernetes", "batch", "watttime", "sustainability"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "requests>=2.28",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
carbonkube-scheduler = "carbonkube.api:main"

[tool.hatch.build.targets.wheel]
packages = ["carbonkube"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
