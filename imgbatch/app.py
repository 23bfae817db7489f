from __future__ import annotations

import os
from pathlib import Path
from threading import Lock

from PySide6.QtCore import QObject, Qt, QThread, Signal, QSettings
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QApplication,
    QCheckBox,
    QComboBox,
    QFileDialog,
    QFormLayout,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QSlider,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from .batch import CompressFunc, Processor, calculate_statistics
from .compress import Compressor
from .errors import BatchError
from .models import (
    CompressOptions,
    DEFAULT_INCLUDE_PATTERNS,
    DEFAULT_PALETTE_SIZE,
    DEFAULT_QUALITY,
    PALETTE_SIZES,
    ProcessorConfig,
    Result,
    normalize_patterns,
)


class BatchWorker(QObject):
    progress = Signal(int, str)
    finished = Signal(list)
    failed = Signal(str)

    def __init__(
        self,
        input_dir: Path,
        config: ProcessorConfig,
        options: CompressOptions,
        backend: CompressFunc | None = None,
    ) -> None:
        super().__init__()
        self.input_dir = input_dir
        self.config = config
        self.options = options
        self.backend = backend if backend is not None else Compressor()
        self.lock = Lock()
        self.done = 0
        self.total = 0

    def run(self) -> None:
        processor = Processor(self.config, self.track)
        try:
            jobs = processor.collect_jobs(self.input_dir, self.options)
        except BatchError as exc:
            self.failed.emit(str(exc))
            return
        self.done = 0
        self.total = len(jobs)
        self.finished.emit(processor.execute(jobs))

    def track(self, source: Path, output: Path, options: CompressOptions) -> None:
        try:
            self.backend(source, output, options)
        finally:
            with self.lock:
                self.done += 1
                percent = int(self.done * 100 / self.total) if self.total else 100
            self.progress.emit(percent, source.name)


class MainWindow(QMainWindow):

    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("Imgbatch")
        self.resize(900, 600)
        self.thread: QThread | None = None
        self.worker: BatchWorker | None = None
        self.settings = QSettings("Imgbatch", "Imgbatch")
        self.input_line = QLineEdit()
        self.output_line = QLineEdit()
        self.include_line = QLineEdit(",".join(DEFAULT_INCLUDE_PATTERNS))
        self.exclude_line = QLineEdit()
        self.recursive_checkbox = QCheckBox("Include subdirectories")
        self.quality_slider = QSlider(Qt.Horizontal)
        self.quality_value = QLabel()
        self.palette_combo = QComboBox()
        self.workers_spin = QSpinBox()
        self.start_button = QPushButton("Start")
        self.progress_bar = QProgressBar()
        self.log_area = QPlainTextEdit()
        self.setup_ui()

    def setup_ui(self) -> None:
        central = QWidget()
        layout = QVBoxLayout()
        layout.addWidget(self.build_path_group())
        layout.addWidget(self.build_options_group())
        layout.addWidget(self.start_button)
        layout.addWidget(self.progress_bar)
        layout.addWidget(self.log_area)
        central.setLayout(layout)
        self.setCentralWidget(central)
        self.log_area.setReadOnly(True)
        self.progress_bar.setValue(0)
        self.quality_slider.setRange(0, 100)
        self.quality_slider.setValue(DEFAULT_QUALITY)
        self.quality_value.setText(str(DEFAULT_QUALITY))
        self.palette_combo.addItems([str(size) for size in PALETTE_SIZES])
        self.palette_combo.setCurrentText(str(DEFAULT_PALETTE_SIZE))
        self.workers_spin.setRange(1, 64)
        self.workers_spin.setValue(os.cpu_count() or 4)
        self.load_settings()
        self.quality_slider.valueChanged.connect(self.on_quality_changed)
        self.start_button.clicked.connect(self.on_start)
        exit_action = QAction("Quit", self)
        exit_action.triggered.connect(self.close)
        self.menuBar().addAction(exit_action)

    def build_path_group(self) -> QGroupBox:
        group = QGroupBox("Paths")
        layout = QGridLayout()
        input_button = QPushButton("Choose input directory")
        output_button = QPushButton("Choose output directory")
        input_button.clicked.connect(self.pick_input_dir)
        output_button.clicked.connect(self.pick_output_dir)
        layout.addWidget(QLabel("Input directory"), 0, 0)
        layout.addWidget(self.input_line, 0, 1)
        layout.addWidget(input_button, 0, 2)
        layout.addWidget(QLabel("Output directory"), 1, 0)
        layout.addWidget(self.output_line, 1, 1)
        layout.addWidget(output_button, 1, 2)
        self.output_line.setPlaceholderText("Empty: write *_compressed files beside the originals")
        group.setLayout(layout)
        return group

    def build_options_group(self) -> QGroupBox:
        group = QGroupBox("Options")
        layout = QFormLayout()
        quality_layout = QHBoxLayout()
        quality_layout.addWidget(self.quality_slider)
        quality_layout.addWidget(self.quality_value)
        layout.addRow("JPEG/WebP quality", quality_layout)
        layout.addRow("PNG palette size", self.palette_combo)
        layout.addRow("Workers", self.workers_spin)
        layout.addRow("Include patterns", self.include_line)
        layout.addRow("Exclude patterns", self.exclude_line)
        layout.addRow(self.recursive_checkbox)
        group.setLayout(layout)
        return group

    def pick_input_dir(self) -> None:
        path = QFileDialog.getExistingDirectory(self, "Choose input directory")
        if path:
            self.input_line.setText(path)

    def pick_output_dir(self) -> None:
        default_dir = self.output_line.text().strip() or self.settings.value("output_dir", "")
        path = QFileDialog.getExistingDirectory(self, "Choose output directory", default_dir)
        if path:
            self.output_line.setText(path)
            self.settings.setValue("output_dir", path)

    def on_quality_changed(self, value: int) -> None:
        self.quality_value.setText(str(value))

    def build_config(self) -> ProcessorConfig:
        output_text = self.output_line.text().strip()
        return ProcessorConfig(
            worker_count=self.workers_spin.value(),
            output_dir=Path(output_text) if output_text else None,
            recursive=self.recursive_checkbox.isChecked(),
            include_patterns=normalize_patterns(self.include_line.text()),
            exclude_patterns=normalize_patterns(self.exclude_line.text()),
        )

    def on_start(self) -> None:
        if self.thread is not None:
            return
        input_text = self.input_line.text().strip()
        if not input_text:
            self.append_log("Please choose an input directory")
            return
        config = self.build_config()
        if not config.include_patterns:
            self.append_log("Please enter at least one include pattern")
            return
        options = CompressOptions(
            quality=self.quality_slider.value(),
            palette_size=int(self.palette_combo.currentText()),
        )
        self.start_button.setEnabled(False)
        self.progress_bar.setValue(0)
        self.log_area.clear()
        self.append_log(f"Compressing images in {input_text} with {config.worker_count} worker(s)")
        self.thread = QThread()
        self.worker = BatchWorker(Path(input_text), config, options)
        self.worker.moveToThread(self.thread)
        self.thread.started.connect(self.worker.run)
        self.worker.progress.connect(self.on_progress)
        self.worker.finished.connect(self.on_finished)
        self.worker.failed.connect(self.on_failed)
        self.worker.finished.connect(self.thread.quit)
        self.worker.failed.connect(self.thread.quit)
        self.thread.finished.connect(self.on_thread_finished)
        self.thread.start()

    def on_progress(self, percent: int, name: str) -> None:
        self.progress_bar.setValue(percent)
        self.append_log(f"{name} done")

    def on_finished(self, results: list[Result]) -> None:
        self.progress_bar.setValue(100)
        if not results:
            self.append_log("No matching files were found")
            return
        for result in results:
            if not result.success:
                self.append_log(f"{result.job.input_path.name}: failed ({result.error})")
        stats = calculate_statistics(results)
        self.append_log(
            f"Done: {stats.success_files} succeeded, {stats.failed_files} failed, "
            f"saved {stats.compression_ratio:.1f}%"
        )

    def on_failed(self, message: str) -> None:
        self.append_log(message)

    def on_thread_finished(self) -> None:
        self.start_button.setEnabled(True)
        self.thread = None
        self.worker = None

    def append_log(self, text: str) -> None:
        self.log_area.appendPlainText(text)

    def load_settings(self) -> None:
        output_dir = self.settings.value("output_dir", "")
        if output_dir:
            self.output_line.setText(output_dir)


def main() -> None:
    app = QApplication([])
    window = MainWindow()
    window.show()
    app.exec()
