import argparse
import sys
from typing import List, Optional

from loguru import logger

from tbsim.config import RegressionConfig
from tbsim.testbenches import ALL_SCENARIOS
from tbsim.utils.logger import configure_logging
from tbsim.verif import RegressionRunner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tbsim",
        description="运行内置的测试平台回归集",
    )
    parser.add_argument("-k", dest="keywords", action="append", default=[],
                        help="只运行名字包含该子串的场景（可重复）")
    parser.add_argument("--config", help="YAML 回归配置文件")
    parser.add_argument("--seed", type=int, help="覆盖所有场景的随机种子")
    parser.add_argument("--log-dir", help="每个场景的日志文件目录")
    parser.add_argument("--log-level", help="控制台/文件日志级别，例如 DEBUG")
    parser.add_argument("--fail-fast", action="store_true", help="第一个失败的场景之后停止")
    parser.add_argument("--list", action="store_true", help="只列出场景名")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = RegressionConfig.load(args.config) if args.config else RegressionConfig()
    if args.seed is not None:
        config.seed = args.seed
    if args.log_dir:
        config.log.dir = args.log_dir
    if args.log_level:
        config.log.level = args.log_level.upper()
    if args.fail_fast:
        config.fail_fast = True

    scenarios = [s for s in ALL_SCENARIOS
                 if not args.keywords or any(k in s.name for k in args.keywords)]
    if args.list:
        for s in scenarios:
            print(f"{s.name:<20} {s.description}")
        return 0

    configure_logging(config.log)
    if not scenarios:
        logger.error(f"没有匹配 {args.keywords} 的场景")
        return 2

    suite = RegressionRunner(config).run_suite(scenarios)
    print(suite.summary())
    return suite.exit_code


if __name__ == "__main__":
    sys.exit(main())
