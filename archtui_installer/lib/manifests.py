from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from ..errors import CatalogError
from ..model import FirmwareMode, KernelVariant, PackageSelection, PackageSet, VirtPlatform


def _manifest_dir() -> Path:
    # archtui_installer/lib/manifests.py -> archtui_installer/manifests
    return Path(__file__).resolve().parents[1] / "manifests"


def load_yaml_rel(rel_path: str) -> Dict[str, Any]:
    """Load a YAML file relative to the manifests directory."""

    p = _manifest_dir() / rel_path.lstrip("/")
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a mapping/dict: {p}")
    return data


def _str_list(value: Any, where: str) -> List[str]:
    if not isinstance(value, list):
        raise ValueError(f"{where} must be a list")
    return [str(v).strip() for v in value if str(v).strip()]


@dataclass(frozen=True)
class Catalog:
    """Static package data. Holds no logic beyond lookup and validation."""

    raw: Dict[str, Any]

    def _section(self, key: str) -> Dict[str, Any]:
        section = self.raw.get(key) or {}
        if not isinstance(section, dict):
            raise ValueError(f"catalog.yaml: {key} must be a mapping")
        return section

    def known_packages(self) -> frozenset:
        names: set = set(_str_list(self.raw.get("base") or [], "base"))
        for kname, kernel in self._section("kernels").items():
            names.add(str(kname))
            names.add(str((kernel or {}).get("headers") or f"{kname}-headers"))
        for tag, desktop in self._section("desktops").items():
            names.update(_str_list((desktop or {}).get("packages") or [], f"desktops.{tag}.packages"))
        names.update(_str_list(self.raw.get("audio") or [], "audio"))
        names.update(str(k) for k in self._section("optional"))
        names.update(_str_list(self.raw.get("nvidia") or [], "nvidia"))
        for mode, pkgs in self._section("grub").items():
            names.update(_str_list(pkgs or [], f"grub.{mode}"))
        for platform, tools in self._section("vm_guest_tools").items():
            names.update(_str_list((tools or {}).get("packages") or [], f"vm_guest_tools.{platform}"))
        return frozenset(names)

    def package_set(self, names: Iterable[str]) -> PackageSet:
        wanted = {str(n).strip() for n in names if str(n).strip()}
        unknown = sorted(wanted - self.known_packages())
        if unknown:
            raise CatalogError(f"Unknown packages: {', '.join(unknown)}")
        return PackageSet(frozenset(wanted))

    def kernel_choices(self) -> List[Tuple[str, str]]:
        return [(str(k), str((v or {}).get("description") or k)) for k, v in self._section("kernels").items()]

    def kernel(self, name: str) -> KernelVariant:
        kernels = self._section("kernels")
        if name not in kernels:
            raise CatalogError(f"Unknown kernel: {name}")
        headers = str((kernels[name] or {}).get("headers") or f"{name}-headers")
        return KernelVariant(package=name, headers=headers)

    def base_packages(self, kernel: KernelVariant) -> PackageSet:
        base = _str_list(self.raw.get("base") or [], "base")
        # Headers let DKMS build NVIDIA and guest modules later.
        return self.package_set([*base, kernel.package, kernel.headers])

    def desktop_choices(self) -> List[Tuple[str, str]]:
        return [(str(k), str((v or {}).get("description") or k)) for k, v in self._section("desktops").items()]

    def default_desktop(self) -> str:
        return str(self.raw.get("default_desktop") or next(iter(self._section("desktops"))))

    def optional_choices(self) -> List[Tuple[str, str]]:
        return [(str(k), str(v or "")) for k, v in self._section("optional").items()]

    def selection(self, desktop_tag: str, *, audio: bool, optional: Iterable[str] = ()) -> PackageSelection:
        desktops = self._section("desktops")
        if desktop_tag not in desktops:
            raise CatalogError(f"Unknown desktop: {desktop_tag}")
        desktop = desktops[desktop_tag] or {}

        optional_names = list(optional)
        unknown = sorted(set(optional_names) - set(self._section("optional")))
        if unknown:
            raise CatalogError(f"Unknown optional packages: {', '.join(unknown)}")

        dm: Optional[str] = desktop.get("display_manager") or None
        return PackageSelection(
            desktop_tag=desktop_tag,
            desktop=self.package_set(_str_list(desktop.get("packages") or [], f"desktops.{desktop_tag}.packages")),
            audio=self.package_set(_str_list(self.raw.get("audio") or [], "audio")) if audio else PackageSet(),
            optional=self.package_set(optional_names),
            display_manager=str(dm) if dm else None,
        )

    def nvidia_packages(self) -> PackageSet:
        return self.package_set(_str_list(self.raw.get("nvidia") or [], "nvidia"))

    def grub_packages(self, firmware: FirmwareMode) -> PackageSet:
        return self.package_set(_str_list(self._section("grub").get(firmware.value) or [], f"grub.{firmware.value}"))

    def vm_guest_tools(self, platform: VirtPlatform) -> Tuple[PackageSet, List[str]]:
        tools = self._section("vm_guest_tools").get(platform.value) or {}
        packages = self.package_set(_str_list(tools.get("packages") or [], f"vm_guest_tools.{platform.value}"))
        services = _str_list(tools.get("services") or [], f"vm_guest_tools.{platform.value}.services")
        return packages, services


def load_catalog() -> Catalog:
    return Catalog(raw=load_yaml_rel("catalog.yaml"))
