from typing import Dict, List, Tuple

from qc_tracker.models.enums import ChecklistCategory


HARDWARE_ITEMS: Tuple[str, ...] = (
    "Periksa kondisi fisik produk",
    "Baut terpasang rapi, kencang, dan tidak cacat",
    "Tombol dan lampu power berfungsi dengan baik",
    "LCD tidak cacat, redup, atau blur",
    "Speaker berfungsi dengan suara jernih",
    "SIM terpasang dan terbaca",
    "PIN sesuai dengan label",
    "Port USB berfungsi baik",
    "Port Type-C berfungsi baik",
    "Port HDMI berfungsi baik",
    "Keyboard dan Touchpad berfungsi baik",
    "Kamera berfungsi dengan baik",
    "WiFi dan Bluetooth berfungsi",
)

SOFTWARE_ITEMS: Tuple[str, ...] = (
    "Windows sudah aktivasi",
    "Semua driver terinstall dengan benar",
    "Dokumentasi unit",
)


class ChecklistTemplateService:
    """Fixed checklist every new QC session is seeded from."""

    def get_template(self) -> Dict[str, List[str]]:
        return {
            ChecklistCategory.HARDWARE.value: list(HARDWARE_ITEMS),
            ChecklistCategory.SOFTWARE.value: list(SOFTWARE_ITEMS),
        }

    def iter_items(self) -> List[Tuple[ChecklistCategory, str]]:
        """Template items in seeding order: hardware first, then software."""
        items = [(ChecklistCategory.HARDWARE, name) for name in HARDWARE_ITEMS]
        items.extend((ChecklistCategory.SOFTWARE, name) for name in SOFTWARE_ITEMS)
        return items
