[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "inkfeed"
version = "0.1.0"
description = "A simple RSS and Atom news feed reader driven by an OPML feed list, with an offline cache and full-article downloads."
requires-python = ">=3.10"
dependencies = []
keywords = ["rss", "atom", "opml", "news", "feed", "reader", "offline"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Text Processing :: Markup :: XML",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
inkfeed = "inkfeed.app:main"

[tool.hatch.build.targets.wheel]
packages = ["inkfeed"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
