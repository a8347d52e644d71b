"""層間インターフェース定義。

全ての層はこのパッケージの抽象クラスにのみ依存する。
backend/store/ の実装に直接依存してはならない。
"""
