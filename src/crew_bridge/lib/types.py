"""Stable domain identifier newtypes."""

from typing import NewType

TargetNamespace = NewType("TargetNamespace", str)
TargetName = NewType("TargetName", str)
