# core/utils/file_io.py
# 统一文件读取入口：按后缀自动选择 CSV/Excel，CSV 支持编码回退；读取后统一列名并解析日期列

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Optional

import pandas as pd

from core.logger import get_logger

_logger = get_logger(__name__)

# 文本类后缀用 read_csv，Excel 用 read_excel
_CSV_LIKE_SUFFIXES = {".csv", ".txt"}
_EXCEL_SUFFIXES = {".xlsx", ".xls"}


class DataLoader:
    """
    日级指标明细的数据加载器：根据文件后缀选择 pandas 读取方式，对 CSV 做编码回退，
    并对读取结果做两项整理：列名去除首尾空白；date_columns 中出现的列解析为日期。

    Input:
        encoding_list: 尝试的编码顺序，仅对 CSV/TXT 生效。默认 ["utf-8", "gbk", "gb18030"]。
        date_columns: 需要解析为日期的列名，默认 ["date"]；文件中不存在的列会被忽略。
    """

    def __init__(
        self,
        encoding_list: Optional[List[str]] = None,
        date_columns: Optional[Iterable[str]] = None,
    ) -> None:
        self._encoding_list: List[str] = encoding_list or [
            "utf-8",
            "gbk",
            "gb18030",
        ]
        self._date_columns: List[str] = list(date_columns) if date_columns is not None else ["date"]

    def read_data(
        self,
        file_path: str | Path,
        **kwargs: Any,
    ) -> pd.DataFrame:
        """
        读取数据文件并整理为分析可用的 DataFrame。

        Input:
            file_path: 文件路径（字符串或 Path）。
            **kwargs: 透传给 pd.read_csv 或 pd.read_excel 的参数，如 sheet_name, sep, usecols 等。
        Output:
            pd.DataFrame: 整理后的数据表。
        逻辑:
            1. 校验文件存在性，不存在则记录 ERROR 日志并抛出 FileNotFoundError。
            2. .csv/.txt -> read_csv（编码回退）；.xlsx/.xls -> read_excel；其余后缀抛出 ValueError。
            3. 列名去除首尾空白，日期列用 pd.to_datetime 解析，无法解析的值记为 NaT。
        """
        path = Path(file_path)
        if not path.exists():
            _msg = f"文件不存在，请检查路径：{path.absolute()}"
            _logger.error(_msg)
            raise FileNotFoundError(_msg)

        suffix = path.suffix.lower()
        if suffix in _CSV_LIKE_SUFFIXES:
            df = self._read_csv_with_encoding(path, **kwargs)
        elif suffix in _EXCEL_SUFFIXES:
            df = pd.read_excel(path, **kwargs)
        else:
            raise ValueError(
                f"不支持的文件格式：{suffix}。"
                f"当前支持：{', '.join(sorted(_CSV_LIKE_SUFFIXES | _EXCEL_SUFFIXES))}。"
            )
        return self._tidy(df)

    def _tidy(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.rename(columns=lambda c: str(c).strip())
        for column in self._date_columns:
            if column in df.columns:
                df[column] = pd.to_datetime(df[column], errors="coerce")
                n_bad = int(df[column].isna().sum())
                if n_bad:
                    _logger.warning("日期列 %s 中有 %d 个值无法解析，已记为 NaT。", column, n_bad)
        return df

    def _read_csv_with_encoding(
        self,
        path: Path,
        **kwargs: Any,
    ) -> pd.DataFrame:
        """
        按 encoding_list 顺序尝试编码读取 CSV/TXT，直到成功。

        若调用方在 kwargs 中传了 encoding，则先试该编码，再试默认列表。
        """
        encodings_to_try: List[str] = []
        if "encoding" in kwargs:
            encodings_to_try.append(kwargs.pop("encoding"))
        encodings_to_try.extend(self._encoding_list)

        last_error: Optional[Exception] = None
        for enc in encodings_to_try:
            try:
                return pd.read_csv(path, encoding=enc, **kwargs)
            except (UnicodeDecodeError, UnicodeError) as e:
                last_error = e
                continue

        _msg = (
            f"使用编码 {encodings_to_try} 均无法正确解码文件：{path.absolute()}。"
            f"最后错误：{last_error!s}"
        )
        _logger.error(_msg)
        raise ValueError(_msg) from last_error
