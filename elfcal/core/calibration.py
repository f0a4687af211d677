"""
Multi-Image Calibration Set
===========================

Fans one selected symbol subtree out across any number of independently
loaded calibration images.  Every (image, leaf symbol) pair gets its own
:class:`CalibrationBinding`; reads and writes are addressed by
``(image_index, symbol_index)``.

The ELF is the address authority: it supplies each symbol's reference
(compiled-in) value.  Each image is the value authority for its own
bindings, and a write to one image never touches another image's bytes
or bindings.

Presentation layers do not hand widgets to the core; they
:meth:`~CalibrationSet.subscribe` to binding updates and may park an
opaque object in :attr:`CalibrationBinding.handle`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from shared.config import ElfcalConfig
from shared.logger import ElfcalLogger

from elfcal.core import codec
from elfcal.core.errors import (
    ErrorCode,
    InvalidImageIndexError,
    InvalidSymbolIndexError,
    SymbolReadError,
    ValueEncodeError,
)
from elfcal.core.models import DataType, SymbolNode
from elfcal.core.symbols import SymbolTree
from elfcal.images.backend import MemoryBackend
from elfcal.parsers.elf_loader import LoadedElf

Observer = Callable[[int, int, "CalibrationBinding"], None]


@dataclass(slots=True)
class CalibrationBinding:
    """One leaf symbol bound to one calibration image.

    Attributes:
        symbol_index: Position of the symbol in the selected subtree.
        node: The symbol tree node (read-only).
        labels: Enumeration labels; empty for non-enum symbols.
        reference: Value compiled into the ELF, ``None`` if unreadable.
        value: Current value in the image, ``None`` if unreadable.
        error: Code of the last failed read of this binding, if any.
        handle: Opaque slot for the presentation layer.
    """

    symbol_index: int
    node: SymbolNode
    labels: tuple[str, ...] = ()
    reference: Optional[codec.Value] = None
    value: Optional[codec.Value] = None
    error: Optional[ErrorCode] = None
    handle: Any = None

    @property
    def address(self) -> int:
        return self.node.address

    @property
    def data_type(self) -> DataType:
        return self.node.data_type

    @property
    def width(self) -> int:
        return codec.width(self.node.data_type)

    @property
    def modified(self) -> bool:
        """True when the image differs from the compiled reference."""
        if self.value is None or self.reference is None:
            return False
        return self.value != self.reference

    @property
    def label(self) -> Optional[str]:
        if self.data_type is DataType.ENUM and isinstance(self.value, int):
            return codec.enum_label(self.value, self.labels)
        return None

    def display(self) -> str:
        if self.label is not None:
            return self.label
        return codec.format_value(self.value, self.data_type)


@dataclass(slots=True)
class LoadedImage:
    """A calibration image: its file name, backend, and bindings."""

    filename: str
    backend: MemoryBackend
    bindings: list[CalibrationBinding] = field(default_factory=list)


class CalibrationSet:
    """Ordered collection of calibration images sharing one symbol subtree.

    Usage::

        cal = CalibrationSet(tree, elf)
        cal.select_symbol_subtree(cu_id)
        cal.attach_image("a.bin", FlatImage.from_file("a.bin", 0x1000))
        cal.write(0, 2, "0x10")
        cal.binding(0, 2).value
        16
    """

    def __init__(
        self,
        tree: SymbolTree,
        elf: Optional[LoadedElf] = None,
        *,
        config: Optional[ElfcalConfig] = None,
        logger: Optional[ElfcalLogger] = None,
    ) -> None:
        self._tree = tree
        self._elf = elf
        self._config = config or ElfcalConfig()
        self._logger = logger or ElfcalLogger("calibration")
        self._images: list[LoadedImage] = []
        self._selected: Optional[int] = None
        self._leaves: list[SymbolNode] = []
        self._references: dict[int, Optional[codec.Value]] = {}
        self._observers: list[Observer] = []

    # ------------------------------------------------------------------ #
    #  Observers
    # ------------------------------------------------------------------ #

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Call *observer* after every populate or write of a binding.

        Returns a callable that removes the subscription.
        """
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self, image_index: int, binding: CalibrationBinding) -> None:
        for observer in list(self._observers):
            observer(image_index, binding.symbol_index, binding)

    # ------------------------------------------------------------------ #
    #  Images
    # ------------------------------------------------------------------ #

    def attach_image(self, filename: str | Path, backend: MemoryBackend) -> int:
        """Append an image and return its index.

        With a subtree selected, bindings are created and populated
        immediately.

        Raises:
            ValueError: *backend* is already attached under another index.
        """
        if any(img.backend is backend for img in self._images):
            raise ValueError(f"backend for {filename} is already attached")
        image = LoadedImage(filename=str(filename), backend=backend)
        self._images.append(image)
        index = len(self._images) - 1
        self._logger.info("Attached image %d: %s", index, image.filename)
        if self._selected is not None:
            image.bindings = self._make_bindings()
            self.read_all(index)
        return index

    def detach_image(self, image_index: int) -> LoadedImage:
        """Remove an image; later images move down one index."""
        self._image(image_index)
        image = self._images.pop(image_index)
        image.bindings.clear()
        self._logger.info("Detached image %d: %s", image_index, image.filename)
        return image

    def save_image(self, image_index: int, filename: str | Path) -> None:
        image = self._image(image_index)
        image.backend.save(filename)
        self._logger.info("Saved image %d to %s", image_index, filename)

    @property
    def images(self) -> tuple[LoadedImage, ...]:
        return tuple(self._images)

    def _image(self, image_index: int) -> LoadedImage:
        if not 0 <= image_index < len(self._images):
            raise InvalidImageIndexError(
                f"image index {image_index} out of range "
                f"({len(self._images)} images)"
            )
        return self._images[image_index]

    # ------------------------------------------------------------------ #
    #  Symbol subtree
    # ------------------------------------------------------------------ #

    def select_symbol_subtree(self, node_id: int) -> list[SymbolNode]:
        """Make *node_id* the active subtree and rebind every image.

        Returns the leaf symbols in binding order.

        Raises:
            ValueError: *node_id* is a qualifier node.
        """
        root = self._tree.node(node_id)
        if root.is_qualifier:
            raise ValueError(f"symbol node {node_id} is a qualifier")

        self._selected = node_id
        self._leaves = self.leaf_symbols(node_id)
        self._references = {
            leaf.node_id: self._read_reference(leaf) for leaf in self._leaves
        }
        self._logger.info(
            "Selected %s: %d symbols",
            self._tree.display_name(node_id),
            len(self._leaves),
        )
        for index, image in enumerate(self._images):
            image.bindings = self._make_bindings()
            self.read_all(index)
        return list(self._leaves)

    @property
    def selected(self) -> Optional[int]:
        return self._selected

    @property
    def symbols(self) -> tuple[SymbolNode, ...]:
        return tuple(self._leaves)

    def leaf_symbols(self, node_id: int) -> list[SymbolNode]:
        """Symbols under *node_id* that become bindings, in tree order.

        Qualifiers and multi-dimensional arrays are not bound but their
        children are visited.  Enumerations are bound and their label
        chains are not descended into.
        """
        leaves: list[SymbolNode] = []
        stack = [node_id]
        while stack:
            node = self._tree.node(stack.pop())
            bindable = (
                not node.is_qualifier
                and not node.is_multidimensional
                and codec.is_supported(node.data_type)
            )
            if bindable:
                leaves.append(node)
                if node.data_type is DataType.ENUM:
                    continue
            stack.extend(reversed(node.children))
        return leaves

    def _make_bindings(self) -> list[CalibrationBinding]:
        depth = self._config.calibration.enum_label_depth
        bindings: list[CalibrationBinding] = []
        for index, leaf in enumerate(self._leaves):
            labels: tuple[str, ...] = ()
            if leaf.data_type is DataType.ENUM:
                labels = tuple(self._tree.enum_labels(leaf.node_id, depth))
            bindings.append(
                CalibrationBinding(
                    symbol_index=index,
                    node=leaf,
                    labels=labels,
                    reference=self._references.get(leaf.node_id),
                )
            )
        return bindings

    def _read_reference(self, leaf: SymbolNode) -> Optional[codec.Value]:
        if self._elf is None:
            return None
        try:
            raw = self._elf.read_bytes(leaf.address, codec.width(leaf.data_type))
        except SymbolReadError as exc:
            self._logger.debug("No reference value for %s", exc)
            return None
        return codec.decode(raw, leaf.data_type)

    # ------------------------------------------------------------------ #
    #  Read / write
    # ------------------------------------------------------------------ #

    def binding(self, image_index: int, symbol_index: int) -> CalibrationBinding:
        image = self._image(image_index)
        if not 0 <= symbol_index < len(image.bindings):
            raise InvalidSymbolIndexError(
                f"symbol index {symbol_index} out of range for image "
                f"{image_index} ({len(image.bindings)} symbols)"
            )
        return image.bindings[symbol_index]

    def read_all(self, image_index: int) -> list[CalibrationBinding]:
        """Refresh every binding of one image from that image's backend.

        A symbol that cannot be read gets ``value=None`` and an error
        code; the rest of the batch is still read.
        """
        image = self._image(image_index)
        failures = 0
        with self._logger.operation("read_all"):
            for binding in image.bindings:
                if not self._refresh(image, binding):
                    failures += 1
                self._notify(image_index, binding)
            if failures:
                self._logger.warning(
                    "Image %d: %d of %d symbols unreadable",
                    image_index,
                    failures,
                    len(image.bindings),
                )
        return list(image.bindings)

    def _refresh(self, image: LoadedImage, binding: CalibrationBinding) -> bool:
        try:
            raw = image.backend.read(binding.address, binding.width)
        except SymbolReadError as exc:
            binding.value = None
            binding.error = exc.code
            self._logger.warning(
                "%s: %s", self._tree.display_name(binding.node.node_id), exc,
                image=image.filename,
            )
            return False
        binding.value = codec.decode(raw, binding.data_type)
        binding.error = None
        return True

    def read_value(self, image_index: int, symbol_index: int) -> Optional[codec.Value]:
        return self.binding(image_index, symbol_index).value

    def write(
        self,
        image_index: int,
        symbol_index: int,
        value: codec.Value | str,
    ) -> CalibrationBinding:
        """Encode *value* and store it in one image at the symbol's address.

        *value* may be raw text as typed by a user.  The binding is read
        back from the image afterwards.

        Raises:
            InvalidImageIndexError: No image at *image_index*.
            InvalidSymbolIndexError: No binding at *symbol_index*.
            ValueEncodeError: *value* does not fit the symbol's type.
            SymbolReadError: The image does not back the symbol's address.
        """
        binding = self.binding(image_index, symbol_index)
        image = self._images[image_index]

        if isinstance(value, str):
            value = codec.parse_text(value, binding.data_type, binding.labels)
        raw = codec.encode(value, binding.data_type)
        if binding.data_type is DataType.ENUM and binding.labels:
            if not 0 <= int(value) < len(binding.labels):
                raise ValueEncodeError(
                    f"ordinal {value} has no label "
                    f"({len(binding.labels)} labels)"
                )

        with self._logger.operation("write"):
            image.backend.write(binding.address, raw)
            self._refresh(image, binding)
            self._logger.info(
                "Image %d: %s = %s",
                image_index,
                self._tree.display_name(binding.node.node_id),
                binding.display(),
            )
        self._notify(image_index, binding)
        return binding
